"""
Syntax tree interface consumed by the walker.

Modules:
    - ``nodes``: The generic `Node` / `ParsedFile` model.
    - ``loader``: Decoding of the grammar engine's JSON dumps.
"""

from puppet_deptool.syntax.loader import JsonTreeLoader, TreeLoader, node_from_dict
from puppet_deptool.syntax.nodes import Node, ParsedFile

__all__ = ["JsonTreeLoader", "Node", "ParsedFile", "TreeLoader", "node_from_dict"]
