"""
Errors raised by the authorization attribute engine.

InvalidInputError and its subclasses are caller mistakes and are never retried.
TransientWriteConflictError is retried by the reconciliation retry policy and
only reaches the caller once the retry bound is exhausted.
"""


class AuthorizationAttrsError(Exception):
    """Base class for every error raised by this package."""


class InvalidInputError(AuthorizationAttrsError, ValueError):
    """Input did not have the shape the operation requires."""


class InvalidAttributesError(InvalidInputError):
    """Authorization attributes were not a list of non-empty scalar mappings."""


class InvalidRecordIdsError(InvalidInputError):
    """No usable record id was supplied."""


class InvalidGrantError(AuthorizationAttrsError, TypeError):
    """A policy returned something that is neither ALL, empty, nor a list of clauses."""


class PolicyNotFoundError(AuthorizationAttrsError, LookupError):
    """No policy is registered for a record type."""


class PermissionNotDefinedError(PolicyNotFoundError):
    """The user policy for a record type has no method for the permission."""


class MissingAssociationError(AuthorizationAttrsError):
    """A model cannot be joined to the authorization_attrs table."""


class TransientWriteConflictError(AuthorizationAttrsError):
    """A reconciliation insert collided with a row written concurrently."""


class UnauthorizedAccessError(AuthorizationAttrsError):
    """The user is not authorized for the permission on the requested records."""

    def __init__(self, permission: str, record_type: str, record_ids: list) -> None:
        self.permission = permission
        self.record_type = record_type
        self.record_ids = record_ids
        super().__init__(
            f"Permission denied: {permission} on {record_type} {', '.join(str(i) for i in record_ids)}"
        )
