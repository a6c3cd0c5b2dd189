from __future__ import annotations
from typing import Any, Callable, Dict, List, Mapping, Optional
from sqlalchemy import and_ as _and, func

from ..errors import FilterError

# Global operator registry (extensible)
OPERATOR_REGISTRY: Dict[str, Callable[[Any, Any], Any]] = {
    'eq': lambda col, v: col.is_(None) if v is None else col == v,
    'ne': lambda col, v: col.is_not(None) if v is None else col != v,
    'lt': lambda col, v: col < v,
    'lte': lambda col, v: col <= v,
    'gt': lambda col, v: col > v,
    'gte': lambda col, v: col >= v,
    'like': lambda col, v: col.like(v),
    'ilike': lambda col, v: getattr(col, 'ilike', lambda x: func.lower(col).like(func.lower(x)))(v),
    'in': lambda col, v: col.in_(list(v) if isinstance(v, (list, tuple, set)) else [v]),
    'not_in': lambda col, v: ~col.in_(list(v) if isinstance(v, (list, tuple, set)) else [v]),
    'between': lambda col, v: col.between(v[0], v[1]),
}


def register_operator(name: str, fn: Callable[[Any, Any], Any]):  # pragma: no cover - simple
    OPERATOR_REGISTRY[name] = fn


def expr_from_filter(table: Any, criteria: Optional[Mapping[str, Any]]):
    """Build a SQLAlchemy conjunction from a filter mapping.

    Accepted forms per column:
    - ``{'name': 'BMW'}``: equality (``None`` means IS NULL)
    - ``{'id': [1, 2]}``: membership
    - ``{'cost': {'gte': 100, 'lt': 500}}``: operator map, see ``OPERATOR_REGISTRY``

    Returns None for an empty filter.
    """
    exprs: List[Any] = []
    for col_name, cond in (criteria or {}).items():
        col = table.c.get(col_name)
        if col is None:
            raise FilterError(f"Unknown filter column: {col_name}")
        if isinstance(cond, Mapping):
            ops = cond
        elif isinstance(cond, (list, tuple, set)):
            ops = {'in': cond}
        else:
            ops = {'eq': cond}
        for op_name, val in ops.items():
            op_fn = OPERATOR_REGISTRY.get(op_name)
            if not op_fn:
                raise FilterError(f"Unknown filter operator: {op_name}")
            if op_name == 'between' and not (isinstance(val, (list, tuple)) and len(val) == 2):
                raise FilterError(f"'between' expects two values, got {val!r}")
            exprs.append(op_fn(col, val))
    if not exprs:
        return None
    return _and(*exprs)
