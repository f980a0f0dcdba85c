#!/usr/bin/env python3
"""
Notepad MCP Server using FastMCP.

Keeps one shared notepad in memory and exposes it through the tool names
the content sync engine polls. Useful for running the example end to end:

    python notepad_mcp_server.py
"""

import logging
from fastmcp import FastMCP

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastMCP server
server = FastMCP(name="notepad")

_notepad = {"content": ""}


@server.tool
def notepad_read() -> str:
    """
    Read the notepad.

    Returns:
        The notepad contents
    """
    if not _notepad["content"]:
        return "Your notepad is empty."
    return f"Notepad contents:\n\n{_notepad['content']}"


@server.tool
def notepad_write(content: str) -> str:
    """
    Replace the notepad contents.

    Args:
        content: New notepad text

    Returns:
        Confirmation message
    """
    _notepad["content"] = content
    logger.info(f"Notepad updated ({len(content)} characters)")
    return "Notepad updated."


@server.tool
def notepad_append(line: str) -> str:
    """
    Append a line to the notepad.

    Args:
        line: Text to append

    Returns:
        Confirmation message
    """
    existing = _notepad["content"]
    _notepad["content"] = f"{existing}\n{line}" if existing else line
    return "Line appended to notepad."


if __name__ == "__main__":
    logger.info("Starting notepad MCP server")
    server.run()
