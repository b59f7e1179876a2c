"""
Benchmark stored authorization attributes against direct checks.

Seeds users, groups and articles into a scratch SQLite database, reconciles
every article, then times the same questions answered two ways:
- attrs: AuthorizationEngine against the authorization_attrs table
- direct: loading the articles and the user's group memberships per check

Usage:
    python -m scripts.benchmark_authorization
"""
import asyncio
import logging
import tempfile
import time
from pathlib import Path

from sqlalchemy import String, select
from sqlalchemy.orm import Mapped, mapped_column

from authorization_attrs import Authorizable, AuthorizationEngine, PolicyRegistry, SqlAttributeStore
from authorization_attrs.core.database.base import Base
from authorization_attrs.core.database.engine import build_engine, build_session_factory, init_db
from authorization_attrs.features.attributes.models import generate_ulid
from authorization_attrs.utils import get_logger


log = get_logger(__name__)

USERS = 10
GROUPS = 10
ARTICLES_PER_USER_AND_GROUP = 5
ROUNDS = 20


class BenchArticle(Base, Authorizable):
    __tablename__ = "bench_articles"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    owner_id: Mapped[int] = mapped_column(nullable=False)
    group_id: Mapped[int] = mapped_column(nullable=False)
    public: Mapped[bool] = mapped_column(default=False)


class BenchMembership(Base):
    __tablename__ = "bench_memberships"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(nullable=False, index=True)
    group_id: Mapped[int] = mapped_column(nullable=False)


class BenchUser:
    def __init__(self, id: int):
        self.id = id


def build_registry(session_factory) -> PolicyRegistry:
    registry = PolicyRegistry()

    @registry.policy_for(BenchArticle)
    class BenchArticlePolicy:
        @staticmethod
        def record_attrs(article):
            return [
                {"public": article.public},
                {"owner_id": article.owner_id},
                {"group_id": article.group_id},
            ]

        def __init__(self, user):
            self.user = user

        async def view(self):
            group_ids = await member_group_ids(session_factory, self.user)
            return [{"group_id": g} for g in group_ids] + [{"public": True}, {"owner_id": self.user.id}]

        def edit(self):
            return [{"public": True}, {"owner_id": self.user.id}]

    return registry


async def member_group_ids(session_factory, user: BenchUser) -> set[int]:
    async with session_factory() as session:
        result = await session.execute(
            select(BenchMembership.group_id).where(BenchMembership.user_id == user.id)
        )
        return set(result.scalars().all())


async def direct_view(session_factory, article_ids: list[str], user: BenchUser) -> bool:
    """Answer view the way a host would without stored attributes."""
    group_ids = await member_group_ids(session_factory, user)
    async with session_factory() as session:
        result = await session.execute(select(BenchArticle).where(BenchArticle.id.in_(article_ids)))
        articles = result.scalars().all()
    if len(articles) != len(set(article_ids)):
        return False
    return all(a.public or a.owner_id == user.id or a.group_id in group_ids for a in articles)


async def direct_view_search(session_factory, user: BenchUser) -> list[BenchArticle]:
    group_ids = await member_group_ids(session_factory, user)
    async with session_factory() as session:
        result = await session.execute(select(BenchArticle))
        return [
            a for a in result.scalars().all()
            if a.public or a.owner_id == user.id or a.group_id in group_ids
        ]


async def seed(session_factory, engine: AuthorizationEngine) -> list[BenchArticle]:
    """Create memberships and articles, then reconcile every article."""
    log.info("Seeding benchmark data...")
    articles = []
    async with session_factory() as session:
        for user_id in range(1, USERS + 1):
            # The first user is kept out of the last group
            for group_id in range(1, GROUPS + 1):
                if not (user_id == 1 and group_id == GROUPS):
                    session.add(BenchMembership(user_id=user_id, group_id=group_id))
                for _ in range(ARTICLES_PER_USER_AND_GROUP):
                    articles.append(BenchArticle(owner_id=user_id, group_id=group_id, public=False))
                    articles.append(BenchArticle(owner_id=user_id, group_id=group_id, public=True))
        session.add_all(articles)
        await session.commit()

    for article in articles:
        await engine.reconcile_for(article)
    log.info(f"Reconciled {len(articles)} articles")
    return articles


async def timed(label: str, operation) -> None:
    started = time.perf_counter()
    for _ in range(ROUNDS):
        await operation()
    elapsed = (time.perf_counter() - started) / ROUNDS
    log.info(f"  {label:<8} {elapsed * 1000:8.2f} ms/check")


async def main():
    """Main function to run the benchmarks."""
    with tempfile.TemporaryDirectory() as scratch:
        db_engine = build_engine(f"sqlite+aiosqlite:///{Path(scratch) / 'benchmark.db'}")
        await init_db(db_engine)
        session_factory = build_session_factory(db_engine)
        engine = AuthorizationEngine(SqlAttributeStore(session_factory), build_registry(session_factory))

        try:
            articles = await seed(session_factory, engine)
            user = BenchUser(1)
            other_owner = USERS
            available = [
                a.id for a in articles
                if a.owner_id == other_owner and a.group_id == 1 and not a.public
            ]
            unavailable = [
                a.id for a in articles
                if a.owner_id == other_owner and a.group_id == GROUPS and not a.public
            ]

            benchmarks = [
                ("single record authorization", available[:1]),
                ("multiple records - none match", unavailable),
                ("multiple records - all match", available),
            ]
            for label, article_ids in benchmarks:
                log.info(label)
                await timed("attrs", lambda ids=article_ids: engine.authorized("view", BenchArticle, ids, user))
                await timed("direct", lambda ids=article_ids: direct_view(session_factory, ids, user))

            log.info("search by permission")
            await timed("attrs", lambda: engine.find_by_permission("view", BenchArticle, user))
            await timed("direct", lambda: direct_view_search(session_factory, user))
        except Exception as e:
            log.error(f"Benchmark failed: {e}", exc_info=True)
            raise
        finally:
            await db_engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    logging.getLogger("authorization_attrs").setLevel(logging.WARNING)
    logging.getLogger(__name__).setLevel(logging.INFO)
    asyncio.run(main())
