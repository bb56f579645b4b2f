# /cw_rest/_filter.py
# CrossWatch REST - response key filter
# Copyright (c) 2025-2026 CrossWatch / Cenodude (https://github.com/cenodude/CrossWatch)
from __future__ import annotations

from typing import Any, Iterable


def filter_keys(tree: Any, names: Iterable[str]) -> Any:
    """Remove every map entry named in `names`, at any depth, in place.

    Names are bare keys, not paths. List entries are never removed; maps
    nested inside lists are filtered like any other map.
    """
    drop = {str(n) for n in names or () if str(n)}
    if not drop:
        return tree

    stack: list[Any] = [tree]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            for key in [k for k in node if k in drop]:
                del node[key]
            stack.extend(child for child in node.values() if isinstance(child, (dict, list)))
        elif isinstance(node, list):
            stack.extend(child for child in node if isinstance(child, (dict, list)))
    return tree


__all__ = ["filter_keys"]
