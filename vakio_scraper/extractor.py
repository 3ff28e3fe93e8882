from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List, Optional, Set

from vakio_scraper.aliases import AliasConfig, load_aliases, resolve_path

DRAW_SIZE = 13


def outcome_list(obj: Dict[str, Any], aliases: AliasConfig) -> Optional[List[Any]]:
    for key in aliases.outcomes:
        val = resolve_path(obj, key)
        if isinstance(val, list) and any(isinstance(v, dict) for v in val):
            return val
    return None


def _seeds(document: Any, aliases: AliasConfig) -> List[Any]:
    if not isinstance(document, dict):
        return []
    out: List[Any] = []
    for key in aliases.containers:
        val = document.get(key)
        if isinstance(val, (dict, list)):
            out.append(val)
    for key in aliases.container_lists:
        val = document.get(key)
        if isinstance(val, list):
            out.append(val)
    return out


def extract(document: Any, *, aliases: Optional[AliasConfig] = None, limit: int = DRAW_SIZE) -> List[Dict[str, Any]]:
    """
    Breadth-first search of an arbitrary JSON tree for match-shaped objects.

    Any object carrying an outcome collection (see AliasConfig.outcomes) is a
    candidate. Known container subtrees are searched before the rest of the
    tree. Candidates are returned in discovery order; the search stops once
    `limit` have been found. Objects are tracked by identity, so shared or
    self-referencing structures are visited once.
    """
    aliases = aliases or load_aliases()
    queue: Deque[Any] = deque(_seeds(document, aliases))
    queue.append(document)
    seen: Set[int] = set()
    found: List[Dict[str, Any]] = []
    while queue and len(found) < limit:
        node = queue.popleft()
        if not isinstance(node, (dict, list)):
            continue
        if id(node) in seen:
            continue
        seen.add(id(node))
        if isinstance(node, list):
            queue.extend(v for v in node if isinstance(v, (dict, list)))
            continue
        if outcome_list(node, aliases) is not None:
            found.append(node)
            continue
        queue.extend(v for v in node.values() if isinstance(v, (dict, list)))
    return found
