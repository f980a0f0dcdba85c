#!/usr/bin/env python3
"""
Task list and inbox MCP Server using FastMCP.

Exposes a task list and a per-agent message directory under the tool
names the content sync engine polls.

    python task_list_mcp_server.py
"""

import logging
from typing import Dict, List

from fastmcp import FastMCP

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastMCP server
server = FastMCP(name="task-list")

_tasks: List[Dict[str, object]] = []
_inbox: List[str] = []


@server.tool
def task_list_add(title: str) -> str:
    """
    Add a task to the list.

    Args:
        title: Task description

    Returns:
        Confirmation with the task number
    """
    _tasks.append({"title": title, "done": False})
    return f"Task {len(_tasks)} added: {title}"


@server.tool
def task_list_complete(number: int) -> str:
    """
    Mark a task as done.

    Args:
        number: 1-based task number

    Returns:
        Confirmation message
    """
    if not 1 <= number <= len(_tasks):
        raise ValueError(f"No task number {number}")
    _tasks[number - 1]["done"] = True
    return f"Task {number} completed."


@server.tool
def task_list_list(status: str = "all") -> str:
    """
    List tasks.

    Args:
        status: One of 'all', 'open' or 'done'

    Returns:
        One task per line
    """
    if status == "open":
        tasks = [t for t in _tasks if not t["done"]]
    elif status == "done":
        tasks = [t for t in _tasks if t["done"]]
    else:
        tasks = list(_tasks)
    if not tasks:
        return "Your task list is empty."
    return "\n".join(f"[{'x' if t['done'] else ' '}] {t['title']}" for t in tasks)


@server.tool
def directory_send_message(content: str) -> str:
    """
    Leave a message in the shared inbox.

    Args:
        content: Message text

    Returns:
        Confirmation message
    """
    _inbox.append(content)
    return "Message delivered."


@server.tool
def directory_check_inbox() -> str:
    """
    Read the shared inbox.

    Returns:
        One message per line
    """
    if not _inbox:
        return "Your inbox is empty."
    return "\n".join(_inbox)


if __name__ == "__main__":
    logger.info("Starting task list MCP server")
    server.run()
