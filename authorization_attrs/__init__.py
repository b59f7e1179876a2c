"""
Attribute-based authorization backed by precomputed, stored attributes.

Each record's authorization attributes are serialized and stored in the
authorization_attrs table, so checks and permission-scoped searches are
set-membership tests instead of joins through the host's associations.
"""
from authorization_attrs.core.exceptions import (
    AuthorizationAttrsError,
    InvalidAttributesError,
    InvalidGrantError,
    InvalidInputError,
    InvalidRecordIdsError,
    MissingAssociationError,
    PermissionNotDefinedError,
    PolicyNotFoundError,
    TransientWriteConflictError,
    UnauthorizedAccessError,
)
from authorization_attrs.features.attributes.models import Authorizable, AuthorizationAttr
from authorization_attrs.features.attributes.retry import RetryPolicy
from authorization_attrs.features.attributes.schemas import AttrsDiff, AuthorizationAttrRead
from authorization_attrs.features.attributes.serializer import serialize_attrs, serialize_clause
from authorization_attrs.features.attributes.store import SqlAttributeStore
from authorization_attrs.features.authorization.service import AuthorizationEngine
from authorization_attrs.features.policies.grants import ALL
from authorization_attrs.features.policies.registry import PolicyRegistry

__version__ = "0.1.0"

__all__ = [
    "ALL",
    "AttrsDiff",
    "Authorizable",
    "AuthorizationAttr",
    "AuthorizationAttrRead",
    "AuthorizationAttrsError",
    "AuthorizationEngine",
    "InvalidAttributesError",
    "InvalidGrantError",
    "InvalidInputError",
    "InvalidRecordIdsError",
    "MissingAssociationError",
    "PermissionNotDefinedError",
    "PolicyNotFoundError",
    "PolicyRegistry",
    "RetryPolicy",
    "SqlAttributeStore",
    "TransientWriteConflictError",
    "UnauthorizedAccessError",
    "serialize_attrs",
    "serialize_clause",
]
