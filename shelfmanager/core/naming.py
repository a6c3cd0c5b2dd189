from __future__ import annotations

from typing import Dict, Iterable, List, Optional

import inflection

__all__ = [
    'singular_candidates',
    'split_path',
    'build_path_tree',
    'ensure_list',
]

PathTree = Dict[str, 'PathTree']


def singular_candidates(name: str) -> List[str]:
    """Return singular forms of a plural type name to try against the registry.

    ``categories`` -> ``category``; ``boxes`` -> ``box``; ``cars`` -> ``car``.
    Empty when ``name`` is already singular.
    """
    if not name:
        return []
    singular = inflection.singularize(name)
    return [singular] if singular and singular != name else []


def split_path(path: str) -> List[str]:
    """Split a dotted relation path, rejecting empty segments."""
    segments = str(path).split('.')
    if any(not s.strip() for s in segments):
        raise ValueError(f"Invalid relation path: {path!r}")
    return [s.strip() for s in segments]


def build_path_tree(paths: Optional[Iterable[str]]) -> PathTree:
    """Merge dotted relation paths into a nested dict keyed by segment.

    Paths sharing a prefix share a branch, so ``['models.type', 'models.specs']``
    becomes ``{'models': {'type': {}, 'specs': {}}}``.
    """
    tree: PathTree = {}
    for path in ensure_list(paths) or []:
        node = tree
        for segment in split_path(path):
            node = node.setdefault(segment, {})
    return tree


def ensure_list(value) -> Optional[list]:
    """Wrap scalars into a list, preserving list inputs."""
    if value is None:
        return None
    if isinstance(value, list):
        return value
    if isinstance(value, tuple):
        return list(value)
    return [value]
