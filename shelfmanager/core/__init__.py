# Core subpackage for shelfmanager: relation declarations, filters and naming helpers.
from .fields import (
    RelationKind, RelationSpec, PivotSpec, RelationDescriptor,
    relation, belongs_to, has_one, has_many, belongs_to_many,
)
from .filters import OPERATOR_REGISTRY, register_operator, expr_from_filter
from .naming import build_path_tree, singular_candidates, split_path

__all__ = [
    'RelationKind','RelationSpec','PivotSpec','RelationDescriptor',
    'relation','belongs_to','has_one','has_many','belongs_to_many',
    'OPERATOR_REGISTRY','register_operator','expr_from_filter',
    'build_path_tree','singular_candidates','split_path',
]
