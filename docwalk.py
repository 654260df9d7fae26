"""
Helpers for untyped nested documents (decoded JSON: scalar | list | dict).

Collaborator responses drift in shape (a bare array today, an object
wrapping it tomorrow), so lookups here search the whole document instead
of following a fixed path.
"""

from collections.abc import Callable, Iterator
from typing import Any

import orjson


def iter_nodes(doc: Any) -> Iterator[Any]:
    """Depth-first, pre-order walk over every node; dict values and list items in order."""
    stack = [doc]
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, dict):
            stack.extend(reversed(list(node.values())))
        elif isinstance(node, (list, tuple)):
            stack.extend(reversed(node))


def find_first(doc: Any, predicate: Callable[[Any], bool]) -> Any | None:
    """First node (pre-order) for which predicate is true, else None."""
    for node in iter_nodes(doc):
        if predicate(node):
            return node
    return None


def is_string_list(node: Any) -> bool:
    return isinstance(node, list) and bool(node) and all(isinstance(v, str) for v in node)


def first_string_list(doc: Any) -> list[str] | None:
    """First non-empty list made only of strings, wherever it sits in the document."""
    return find_first(doc, is_string_list)


# ---------------------------------------------------------------------------
# JSON in free text
# ---------------------------------------------------------------------------


def _brace_match(text: str, start: int) -> str | None:
    """Extract a balanced JSON object/array from text starting at position start.

    Handles nested braces/brackets and string literals with escaped quotes.
    """
    if start >= len(text) or text[start] not in ("{", "["):
        return None

    depth = 0
    in_string = False
    escape_next = False
    i = start

    while i < len(text):
        c = text[i]

        if escape_next:
            escape_next = False
        elif c == "\\" and in_string:
            escape_next = True
        elif c == '"':
            in_string = not in_string
        elif not in_string:
            if c in ("{", "["):
                depth += 1
            elif c in ("}", "]"):
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        i += 1

    return None


def extract_json(text: str) -> Any | None:
    """Decode the first JSON object or array found in text (e.g. inside a markdown fence)."""
    if not text:
        return None
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        pass

    for i, c in enumerate(text):
        if c not in ("{", "["):
            continue
        candidate = _brace_match(text, i)
        if not candidate:
            continue
        try:
            return orjson.loads(candidate)
        except orjson.JSONDecodeError:
            continue
    return None
