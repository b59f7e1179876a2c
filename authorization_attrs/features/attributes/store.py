"""
SQL storage for authorization attributes.

Implements:
- Reconciliation of a record's stored clauses with freshly computed ones
- Single and bulk matching of stored clauses against a user's grant
- Permission-scoped record search through an inner join
"""
from collections.abc import Iterable
from typing import Any, AbstractSet, List, Optional, Set, Union
from sqlalchemy import Select, String, and_, cast, select, delete, func, inspect as sa_inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authorization_attrs.core.exceptions import (
    InvalidRecordIdsError,
    MissingAssociationError,
    TransientWriteConflictError,
)
from authorization_attrs.features.attributes.models import AuthorizationAttr, type_tag
from authorization_attrs.features.attributes.retry import RetryPolicy
from authorization_attrs.features.attributes.schemas import AttrsDiff, AuthorizationAttrRead
from authorization_attrs.features.attributes.serializer import Clause, serialize_attrs
from authorization_attrs.features.policies.grants import ALL, Unconditional
from authorization_attrs.utils import get_logger


log = get_logger(__name__)

ASSOCIATION = "authorization_attrs"

UserAttrs = Union[Unconditional, AbstractSet[str]]


class SqlAttributeStore:
    """
    Attribute store backed by the authorization_attrs table.

    Every operation opens its own session from the injected factory; the store
    keeps no other state.

    Usage:
        store = SqlAttributeStore(AsyncSessionLocal)
        await store.reconcile("Article", article.id, [{"group_id": 1}])
        await store.matches_any("Article", article.id, {"group_id=1"})
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self.session_factory = session_factory
        self.retry_policy = retry_policy or RetryPolicy.from_config()

    # ========================================================================
    # Writes
    # ========================================================================

    async def reconcile(
        self,
        record_type: Any,
        record_id: Any,
        new_clauses: Optional[Iterable[Optional[Clause]]],
    ) -> AttrsDiff:
        """
        Bring a record's stored clauses in line with new_clauses.

        Deletes stored clauses that are no longer present and inserts the new
        ones in a single transaction. Nothing is written when the sets already
        agree. A uniqueness conflict with a concurrent reconciliation rolls the
        transaction back and retries it with a fresh read.

        Returns:
            The clauses removed and added by the successful attempt
        """
        tag = type_tag(record_type)
        record_id = str(record_id)
        new_names = set(serialize_attrs(new_clauses))

        async def attempt() -> AttrsDiff:
            try:
                async with self.session_factory() as session:
                    async with session.begin():
                        return await self._apply(session, tag, record_id, new_names)
            except IntegrityError as e:
                raise TransientWriteConflictError(
                    f"Concurrent write to authorization attributes of {tag}:{record_id}"
                ) from e

        diff = await self.retry_policy.run(attempt)
        if diff.changed:
            log.info(
                f"Reconciled {tag}:{record_id} added={diff.added} removed={diff.removed}"
            )
        return diff

    async def _apply(
        self,
        session: AsyncSession,
        tag: str,
        record_id: str,
        new_names: Set[str],
    ) -> AttrsDiff:
        current_names = await self._current_names(session, tag, record_id)
        to_remove = current_names - new_names
        to_add = new_names - current_names

        if to_remove:
            await session.execute(
                delete(AuthorizationAttr).where(
                    AuthorizationAttr.authorizable_type == tag,
                    AuthorizationAttr.authorizable_id == record_id,
                    AuthorizationAttr.name.in_(sorted(to_remove)),
                )
            )
        if to_add:
            session.add_all(
                AuthorizationAttr(authorizable_type=tag, authorizable_id=record_id, name=name)
                for name in sorted(to_add)
            )
            await session.flush()

        return AttrsDiff(
            authorizable_type=tag,
            authorizable_id=record_id,
            added=sorted(to_add),
            removed=sorted(to_remove),
        )

    async def _current_names(self, session: AsyncSession, tag: str, record_id: str) -> Set[str]:
        result = await session.execute(
            select(AuthorizationAttr.name).where(
                AuthorizationAttr.authorizable_type == tag,
                AuthorizationAttr.authorizable_id == record_id,
            )
        )
        return set(result.scalars().all())

    async def clear(self, record_type: Any, record_id: Any) -> int:
        """Delete every stored clause of a record. Returns the number of rows removed."""
        tag = type_tag(record_type)
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    delete(AuthorizationAttr).where(
                        AuthorizationAttr.authorizable_type == tag,
                        AuthorizationAttr.authorizable_id == str(record_id),
                    )
                )
        log.info(f"Cleared {result.rowcount} authorization attributes of {tag}:{record_id}")
        return result.rowcount

    # ========================================================================
    # Reads
    # ========================================================================

    async def attrs_for(self, record_type: Any, record_id: Any) -> List[AuthorizationAttrRead]:
        """Stored clauses of one record, sorted by name."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(AuthorizationAttr)
                .where(
                    AuthorizationAttr.authorizable_type == type_tag(record_type),
                    AuthorizationAttr.authorizable_id == str(record_id),
                )
                .order_by(AuthorizationAttr.name)
            )
            return [AuthorizationAttrRead.model_validate(row) for row in result.scalars().all()]

    async def matches_any(self, record_type: Any, record_id: Any, user_attrs: AbstractSet[str]) -> bool:
        """True if the record has at least one stored clause in user_attrs."""
        if not user_attrs:
            return False

        async with self.session_factory() as session:
            result = await session.execute(
                select(AuthorizationAttr.id)
                .where(
                    AuthorizationAttr.authorizable_type == type_tag(record_type),
                    AuthorizationAttr.authorizable_id == str(record_id),
                    AuthorizationAttr.name.in_(sorted(user_attrs)),
                )
                .limit(1)
            )
            return result.first() is not None

    async def matches_all(
        self,
        record_type: Any,
        record_ids: Iterable[Any],
        user_attrs: AbstractSet[str],
    ) -> bool:
        """
        True if every record has at least one stored clause in user_attrs.

        Counts the distinct matching ids in one query; a record with no stored
        clauses, or none in user_attrs, makes the count fall short.
        """
        ids = {str(record_id) for record_id in record_ids}
        if not ids:
            raise InvalidRecordIdsError("At least one record id is required")
        if not user_attrs:
            return False

        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(AuthorizationAttr.authorizable_id.distinct())).where(
                    AuthorizationAttr.authorizable_type == type_tag(record_type),
                    AuthorizationAttr.authorizable_id.in_(sorted(ids)),
                    AuthorizationAttr.name.in_(sorted(user_attrs)),
                )
            )
            matched = result.scalar_one()

        log.debug(f"{matched}/{len(ids)} {type_tag(record_type)} records matched")
        return matched == len(ids)

    def permitted_query(self, model: type, user_attrs: UserAttrs) -> Select:
        """
        Statement selecting the model's records permitted by user_attrs.

        ALL selects every record. Otherwise the model is inner-joined to its
        stored clauses and filtered by user_attrs. Callers may add their own
        filters, ordering and pagination before executing it.

        Raises:
            MissingAssociationError: if the model lacks the authorization_attrs relationship
        """
        self._check_association(model)
        primary_key = sa_inspect(model).primary_key

        if user_attrs is ALL:
            return select(model).order_by(*primary_key)

        # Tagged with the searched class, not the one declaring the relationship
        on_clause = and_(
            cast(model.id, String) == AuthorizationAttr.authorizable_id,
            AuthorizationAttr.authorizable_type == type_tag(model),
        )
        return (
            select(model)
            .join(AuthorizationAttr, on_clause)
            .where(AuthorizationAttr.name.in_(sorted(user_attrs)))
            .distinct()
            .order_by(*primary_key)
        )

    async def find_by_permission(self, model: type, user_attrs: UserAttrs) -> List[Any]:
        """Records of model permitted by user_attrs."""
        stmt = self.permitted_query(model, user_attrs)
        if user_attrs is not ALL and not user_attrs:
            return []

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return list(result.scalars().all())

    @staticmethod
    def _check_association(model: type) -> None:
        mapper = sa_inspect(model, raiseerr=False)
        relationship = None
        if mapper is not None and ASSOCIATION in mapper.relationships:
            relationship = mapper.relationships[ASSOCIATION]

        if relationship is None or relationship.mapper.class_ is not AuthorizationAttr:
            raise MissingAssociationError(
                f"Please add the {ASSOCIATION} relationship to {type_tag(model)} to use this feature:\n\n"
                f"    class {type_tag(model)}(Base, Authorizable):\n"
                f"        ..."
            )
