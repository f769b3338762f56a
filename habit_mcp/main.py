#!/usr/bin/env python3
"""
Habit Tracker MCP Server

This module provides the main entry point for the Habit Tracker MCP server.
"""

import sys
import traceback
from typing import Any, Dict, Optional, Tuple

from mcp.server.fastmcp import FastMCP

from habit_mcp.auth.session import AuthManager
from habit_mcp.auth.token_manager import TokenManager
from habit_mcp.drive.gateway import DriveGateway
from habit_mcp.mcp.resources import setup_resources
from habit_mcp.mcp.tools import setup_tools
from habit_mcp.tracker.initializer import DriveInitializer
from habit_mcp.tracker.store import HabitStore
from habit_mcp.utils.config import get_config
from habit_mcp.utils.logger import get_logger, setup_logger

logger = get_logger("habit_mcp")


def create_app(config: Optional[Dict[str, Any]] = None) -> Tuple[FastMCP, AuthManager, HabitStore]:
    """
    Wire the server together.

    Args:
        config: Configuration dictionary. Defaults to get_config().

    Returns:
        Tuple[FastMCP, AuthManager, HabitStore]: The application and the
        objects its tools share.
    """
    config = config or get_config()

    token_manager = TokenManager(config)
    auth = AuthManager(token_manager, config=config)
    gateway = DriveGateway(credentials_provider=auth.get_credentials)
    initializer = DriveInitializer(
        auth,
        gateway,
        folder_name=config["drive_folder_name"],
        file_name=config["drive_file_name"],
        max_attempts=config["init_max_attempts"],
        backoff_seconds=config["init_backoff_seconds"],
    )
    store = HabitStore(initializer, gateway)

    # Signing out (or losing the session) drops all Drive state
    auth.add_sign_out_listener(store.reset)
    auth.add_sign_out_listener(initializer.reset)

    mcp = FastMCP(name=config["mcp_server_name"])
    setup_tools(mcp, auth, store)
    setup_resources(mcp, auth, store)

    return mcp, auth, store


def main() -> None:
    """
    Main entry point for the Habit Tracker MCP server.
    """
    setup_logger("habit_mcp")
    try:
        mcp, auth, _ = create_app()

        if auth.restore():
            logger.info("Restored previous session")
        else:
            logger.info("No stored session, waiting for sign_in")

        logger.info("Starting Habit Tracker MCP server")
        mcp.run()
    except Exception as e:
        logger.error(f"Error running MCP server: {e}")
        logger.error(traceback.format_exc())
        sys.exit(1)


if __name__ == "__main__":
    main()
