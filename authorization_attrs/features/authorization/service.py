"""
Authorization checks against stored authorization attributes.

Implements:
- authorized / authorize: is the user granted a permission on these records?
  OR across the clauses of the grant, AND across the requested records.
- find_by_permission: which records of a type is the user granted?
- reconcile_for / clear_attrs_for: the write path keeping stored attributes
  in line with each record's policy
"""
from typing import Any, List

from authorization_attrs.core.exceptions import UnauthorizedAccessError
from authorization_attrs.features.attributes.models import type_tag
from authorization_attrs.features.attributes.schemas import AttrsDiff
from authorization_attrs.features.attributes.store import SqlAttributeStore
from authorization_attrs.features.authorization.ids import filter_ids
from authorization_attrs.features.policies.grants import ALL, resolve_grant
from authorization_attrs.features.policies.registry import PolicyRegistry
from authorization_attrs.utils import get_logger


log = get_logger(__name__)


class AuthorizationEngine:
    """
    Answers authorization questions for registered record types.

    The engine holds no state besides its collaborators and is safe to share
    between tasks.

    Usage:
        engine = AuthorizationEngine(SqlAttributeStore(AsyncSessionLocal), registry)

        await engine.reconcile_for(article)
        if await engine.authorized("view", Article, article, user):
            ...
        articles = await engine.find_by_permission("view", Article, user)
    """

    def __init__(self, store: SqlAttributeStore, registry: PolicyRegistry) -> None:
        self.store = store
        self.registry = registry

    async def user_attrs(self, permission: str, record_type: Any, user: Any) -> Any:
        """The grant returned by the user policy, unserialized."""
        return await self.registry.grant(permission, record_type, user)

    def record_attrs(self, record: Any) -> Any:
        """The clauses returned by the record policy, unserialized."""
        return self.registry.record_attrs(record)

    async def authorized(self, permission: str, record_type: Any, records: Any, user: Any) -> bool:
        """
        Check if user has permission on every one of the given records.

        Args:
            permission: Name of a permission method on the user policy
            record_type: Model class (or type tag) of the records
            records: An id, a record, or a list mixing both
            user: Passed to the user policy

        Returns:
            True if the grant is ALL, or every record shares at least one clause
            with the grant
        """
        record_ids = filter_ids(records)
        tag = type_tag(record_type)
        grant = resolve_grant(await self.user_attrs(permission, record_type, user))

        if grant is ALL:
            log.debug(f"{permission} on {tag} granted unconditionally")
            return True
        if not grant:
            log.debug(f"{permission} on {tag} denied: empty grant")
            return False

        allowed = await self.store.matches_all(tag, record_ids, grant)
        log.debug(f"{permission} on {tag} {record_ids} {'granted' if allowed else 'denied'}")
        return allowed

    async def authorize(self, permission: str, record_type: Any, records: Any, user: Any) -> None:
        """
        Like authorized(), but raise instead of returning False.

        Raises:
            UnauthorizedAccessError: if the user lacks the permission on any record
        """
        if not await self.authorized(permission, record_type, records, user):
            raise UnauthorizedAccessError(permission, type_tag(record_type), filter_ids(records))

    async def find_by_permission(self, permission: str, record_type: type, user: Any) -> List[Any]:
        """Records of record_type the user has permission on, ordered by primary key."""
        grant = resolve_grant(await self.user_attrs(permission, record_type, user))

        if grant is not ALL and not grant:
            log.debug(f"{permission} on {type_tag(record_type)}: empty grant, nothing to find")
            return []

        return await self.store.find_by_permission(record_type, grant)

    async def reconcile_for(self, record: Any) -> AttrsDiff:
        """
        Store the record's current authorization attributes.

        Call this whenever a field its policy reads changes; nothing detects
        such changes automatically.
        """
        return await self.store.reconcile(type_tag(record), record.id, self.record_attrs(record))

    async def clear_attrs_for(self, record: Any) -> int:
        """Remove the record's stored attributes, e.g. after deleting it."""
        return await self.store.clear(type_tag(record), record.id)
