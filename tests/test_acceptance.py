"""End-to-end tests: policies, reconciliation and checks against SQLite."""

from types import SimpleNamespace

import pytest
from sqlalchemy import select

from authorization_attrs import (
    ALL,
    AuthorizationEngine,
    PolicyRegistry,
    UnauthorizedAccessError,
)
from tests.models import Article, GroupMembership


def build_registry(session_factory) -> PolicyRegistry:
    registry = PolicyRegistry()

    @registry.policy_for(Article)
    class ArticlePolicy:
        @staticmethod
        def record_attrs(article):
            return [
                {"public": article.public},
                {"owner_id": article.owner_id},
                {"group_id": article.group_id},
            ]

        def __init__(self, user):
            self.user = user

        def bazify(self):
            return [{"group_id": self.user.group_id}]

        async def view(self):
            # Reads the user's memberships, the join that stored attributes avoid per record
            async with session_factory() as session:
                result = await session.execute(
                    select(GroupMembership.group_id).where(GroupMembership.user_id == self.user.id)
                )
                group_ids = result.scalars().all()
            return (
                [{"group_id": group_id} for group_id in group_ids]
                + [{"public": True}, {"owner_id": self.user.id}]
            )

        def manage(self):
            return ALL if self.user.is_admin else []

    return registry


@pytest.fixture
def engine(store, session_factory) -> AuthorizationEngine:
    return AuthorizationEngine(store, build_registry(session_factory))


@pytest.fixture
def user():
    return SimpleNamespace(id=10, group_id=1, is_admin=False)


@pytest.fixture
def reconciled(engine, make_article):
    async def _make(**fields) -> Article:
        article = await make_article(**fields)
        await engine.reconcile_for(article)
        return article

    return _make


class TestQueryingAuthorizations:
    """authorized() for single and multiple records."""

    async def test_matching_record(self, engine, reconciled, user) -> None:
        r1 = await reconciled(group_id=1)

        assert await engine.authorized("bazify", Article, r1, user) is True

    async def test_can_be_called_with_an_id(self, engine, reconciled, user) -> None:
        r1 = await reconciled(group_id=1)

        assert await engine.authorized("bazify", Article, r1.id, user) is True

    async def test_non_matching_record(self, engine, reconciled, user) -> None:
        r2 = await reconciled(group_id=2)

        assert await engine.authorized("bazify", Article, r2, user) is False

    async def test_any_unauthorized_record_denies_the_batch(self, engine, reconciled, user) -> None:
        r1, r2 = await reconciled(group_id=1), await reconciled(group_id=2)

        assert await engine.authorized("bazify", Article, [r1, r2], user) is False

    async def test_all_unauthorized_records(self, engine, reconciled, user) -> None:
        records = [await reconciled(group_id=2), await reconciled(group_id=3)]

        assert await engine.authorized("bazify", Article, records, user) is False

    async def test_all_authorized_records(self, engine, reconciled, user) -> None:
        r1, r1b = await reconciled(group_id=1), await reconciled(group_id=1, owner_id=3)

        assert await engine.authorized("bazify", Article, [r1, r1b.id], user) is True

    async def test_unreconciled_record_is_not_authorized(self, engine, make_article, user) -> None:
        article = await make_article(group_id=1)

        assert await engine.authorized("bazify", Article, article, user) is False

    async def test_any_overlapping_clause_is_enough(self, engine, reconciled, session_factory, user) -> None:
        async with session_factory() as session:
            session.add(GroupMembership(user_id=user.id, group_id=7))
            await session.commit()
        in_group = await reconciled(group_id=7)
        public = await reconciled(group_id=99, public=True)
        own = await reconciled(group_id=99, owner_id=user.id)
        other = await reconciled(group_id=99, owner_id=11)

        assert await engine.authorized("view", Article, [in_group, public, own], user) is True
        assert await engine.authorized("view", Article, other, user) is False

    async def test_unconditional_grant(self, engine, make_article, user) -> None:
        admin = SimpleNamespace(id=1, group_id=None, is_admin=True)
        article = await make_article(group_id=2)

        assert await engine.authorized("manage", Article, article, admin) is True
        assert await engine.authorized("manage", Article, article, user) is False


class TestAssertingAuthorizations:
    """authorize() raises instead of returning False."""

    async def test_authorized(self, engine, reconciled, user) -> None:
        await engine.authorize("bazify", Article, await reconciled(group_id=1), user)

    async def test_unauthorized(self, engine, reconciled, user) -> None:
        with pytest.raises(UnauthorizedAccessError, match="Permission denied: bazify on Article"):
            await engine.authorize("bazify", Article, await reconciled(group_id=999), user)


class TestFindingRecords:
    """find_by_permission() through the engine."""

    async def test_no_matches(self, engine, reconciled, user) -> None:
        await reconciled(group_id=2)
        await reconciled(group_id=3)

        assert await engine.find_by_permission("bazify", Article, user) == []

    async def test_only_matching_records(self, engine, reconciled, user) -> None:
        await reconciled(group_id=2)
        r1 = await reconciled(group_id=1)
        await reconciled(group_id=3)

        found = await engine.find_by_permission("bazify", Article, user)

        assert [a.id for a in found] == [r1.id]

    async def test_unconditional_grant_finds_everything(self, engine, reconciled, make_article) -> None:
        admin = SimpleNamespace(id=1, group_id=None, is_admin=True)
        records = [await reconciled(group_id=2), await make_article(group_id=3)]

        found = await engine.find_by_permission("manage", Article, admin)

        assert sorted(a.id for a in found) == sorted(a.id for a in records)

    async def test_empty_grant_finds_nothing(self, engine, reconciled, user) -> None:
        await reconciled(group_id=1)

        assert await engine.find_by_permission("manage", Article, user) == []


class TestKeepingAttributesCurrent:
    """Reconciliation after a record changes, and clearing on delete."""

    async def test_reconcile_after_change(self, engine, store, reconciled, session_factory, user) -> None:
        article = await reconciled(group_id=2, owner_id=3)
        assert await engine.authorized("bazify", Article, article, user) is False

        async with session_factory() as session:
            article = await session.get(Article, article.id)
            article.group_id = 1
            await session.commit()
        diff = await engine.reconcile_for(article)

        assert diff.added == ["group_id=1"]
        assert diff.removed == ["group_id=2"]
        assert await engine.authorized("bazify", Article, article, user) is True

    async def test_reconcile_without_change_is_a_no_op(self, engine, reconciled) -> None:
        article = await reconciled(group_id=1, owner_id=3)

        diff = await engine.reconcile_for(article)

        assert not diff.changed

    async def test_stored_attributes(self, engine, store, reconciled) -> None:
        article = await reconciled(group_id=1, owner_id=3)

        names = [a.name for a in await store.attrs_for(Article, article.id)]

        assert names == ["group_id=1", "owner_id=3", "public=false"]

    async def test_clear_attrs_for(self, engine, reconciled, user) -> None:
        article = await reconciled(group_id=1)

        assert await engine.clear_attrs_for(article) == 3
        assert await engine.authorized("bazify", Article, article, user) is False
