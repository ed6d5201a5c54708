from __future__ import annotations

import json
import re
from typing import Any, Iterator, List, Optional


MAX_DEPTH = 40


def find_values(obj: Any, key: str, max_depth: int = MAX_DEPTH, _depth: int = 0) -> Iterator[Any]:
    """Yield every value stored under ``key`` anywhere in a decoded JSON tree."""
    if _depth > max_depth:
        return
    if isinstance(obj, dict):
        for k, v in obj.items():
            if k == key:
                yield v
            if isinstance(v, (dict, list)):
                yield from find_values(v, key, max_depth, _depth + 1)
    elif isinstance(obj, list):
        for item in obj:
            yield from find_values(item, key, max_depth, _depth + 1)


def first_value(obj: Any, key: str) -> Any:
    return next(find_values(obj, key), None)


def text_of(node: Any) -> str:
    """Flatten the ``simpleText`` / ``runs`` text containers used in page JSON."""
    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, dict):
        if "simpleText" in node:
            return str(node["simpleText"])
        runs = node.get("runs")
        if isinstance(runs, list):
            return "".join(str(r.get("text", "")) for r in runs if isinstance(r, dict))
    return ""


def extract_json_object(text: str, patterns: List[re.Pattern]) -> Optional[Any]:
    """Return the first JSON object captured by any pattern that also decodes."""
    for pattern in patterns:
        match = pattern.search(text)
        if not match:
            continue
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            continue
    return None
