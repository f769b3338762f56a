"""
Tracker package: the habit document, the Drive initializer and the in-memory
store that loads and saves the document.
"""
