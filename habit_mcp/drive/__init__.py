"""
Drive module for reading and writing the habit document in Google Drive.
"""

from habit_mcp.drive.gateway import DriveGateway

__all__ = ["DriveGateway"]
