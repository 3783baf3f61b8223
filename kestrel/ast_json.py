"""JSON serialization/deserialization for the Kestrel Ast.

This module converts between `Ast` nodes and plain Python dict/list
structures suitable for JSON encoding. Every field of a node is kept, so
a tree read back from JSON evaluates exactly like the parsed one.
"""

from __future__ import annotations

from typing import Any, Dict

from .ast import Ast


def ast_to_obj(node: Ast) -> Dict[str, Any]:
    obj: Dict[str, Any] = {"tag": node.tag, "line": node.line, "column": node.column}
    if node.original_tag != node.tag:
        obj["original_tag"] = node.original_tag
    if node.is_token:
        obj["token"] = node.token
    elif node.token is not None:
        # DOT steps carry the property name without being tokens
        obj["name"] = node.token
    if node.nodes:
        obj["nodes"] = [ast_to_obj(n) for n in node.nodes]
    return obj


def ast_from_obj(obj: Any) -> Ast:
    if not isinstance(obj, dict) or "tag" not in obj:
        raise TypeError("Invalid AST object")
    is_token = "token" in obj
    return Ast(
        tag=obj["tag"],
        nodes=[ast_from_obj(n) for n in obj.get("nodes", [])],
        token=obj["token"] if is_token else obj.get("name"),
        line=int(obj.get("line", 0)),
        column=int(obj.get("column", 0)),
        original_tag=obj.get("original_tag"),
        is_token=is_token,
    )
