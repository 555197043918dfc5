"""
sap_calm.tools - Tool table and dispatcher
==========================================

Every tool is one ToolSpec row; ToolDispatcher runs them all through the
same validate, build, execute and normalize pipeline.

"""

from sap_calm.tools.dispatcher import ToolDispatcher
from sap_calm.tools.registry import TOOLS, Operation, ToolRegistry, ToolSpec

__all__ = [
    "ToolDispatcher",
    "TOOLS",
    "Operation",
    "ToolRegistry",
    "ToolSpec",
]
