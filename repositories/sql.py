"""Durable persistence gateway on top of async SQLAlchemy.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) in tests. The unit of
work handed to repositories by ``SqlTransactionCoordinator`` is the
``AsyncSession`` that owns the open transaction.
"""
import functools
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.logging import get_logger
from models import models
from models.entities import PRStats, PRStatus, PullRequest, Team, User, UserStats
from services.errors import (
    PRExists,
    PRNotFound,
    StorageError,
    TeamExists,
    TeamNotFound,
    UserNotFound,
)


logger = get_logger(__name__)

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def storage_operation(operation: str):
    """Wrap driver and ORM failures into ``StorageError`` tagged with ``operation``."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except SQLAlchemyError as exc:
                logger.error("storage_error", operation=operation, error=str(exc))
                raise StorageError(operation, exc) from exc
        return wrapper
    return decorator


def _insert(session: AsyncSession, table):
    dialect = session.get_bind().dialect.name
    return _INSERTS[dialect](table)


def _to_user(row: models.User) -> User:
    return User(id=row.id, username=row.name, team_name=row.team_name, is_active=row.is_active)


def _to_pr(row: models.PullRequest, reviewers: Optional[List[str]] = None) -> PullRequest:
    return PullRequest(
        id=row.id,
        name=row.name,
        author_id=row.author_id,
        status=PRStatus(row.status),
        reviewers=reviewers or [],
        created_at=row.created_at,
        merged_at=row.merged_at,
    )


class _SqlRepository:
    def __init__(self, session_maker: async_sessionmaker):
        self._session_maker = session_maker

    @asynccontextmanager
    async def _session(self, uow: Optional[AsyncSession]) -> AsyncIterator[AsyncSession]:
        if uow is not None:
            yield uow
            return
        async with self._session_maker() as session:
            yield session
            await session.commit()


class SqlTeamRepository(_SqlRepository):
    @storage_operation("get team")
    async def get(self, name: str, uow: Any = None) -> Team:
        async with self._session(uow) as session:
            exists = await session.scalar(select(models.Team.name).where(models.Team.name == name))
            if exists is None:
                raise TeamNotFound()
            result = await session.scalars(
                select(models.User).where(models.User.team_name == name).order_by(models.User.id)
            )
            return Team(name=name, members=[_to_user(row) for row in result.all()])

    @storage_operation("save team")
    async def save(self, team: Team, uow: Any = None) -> None:
        async with self._session(uow) as session:
            session.add(models.Team(name=team.name))
            try:
                await session.flush()
            except IntegrityError:
                raise TeamExists()


class SqlUserRepository(_SqlRepository):
    @storage_operation("get user")
    async def get(self, user_id: str, uow: Any = None) -> User:
        async with self._session(uow) as session:
            row = await session.get(models.User, user_id)
            if row is None:
                raise UserNotFound()
            return _to_user(row)

    @storage_operation("get users by team")
    async def get_by_team(self, team_name: str, uow: Any = None) -> List[User]:
        async with self._session(uow) as session:
            result = await session.scalars(
                select(models.User)
                .where(models.User.team_name == team_name)
                .order_by(models.User.id)
            )
            return [_to_user(row) for row in result.all()]

    @storage_operation("get active users by team")
    async def get_active_by_team(
        self, team_name: str, exclude_id: Optional[str] = None, uow: Any = None
    ) -> List[User]:
        query = select(models.User).where(
            models.User.team_name == team_name,
            models.User.is_active.is_(True),
        )
        if exclude_id is not None:
            query = query.where(models.User.id != exclude_id)
        async with self._session(uow) as session:
            result = await session.scalars(query.order_by(models.User.id))
            return [_to_user(row) for row in result.all()]

    @storage_operation("bulk save/update users")
    async def save_update_many(self, users: List[User], uow: Any = None) -> None:
        if not users:
            return
        async with self._session(uow) as session:
            stmt = _insert(session, models.User).values([
                {"id": u.id, "name": u.username, "team_name": u.team_name, "is_active": u.is_active}
                for u in users
            ])
            stmt = stmt.on_conflict_do_update(
                index_elements=[models.User.id],
                set_={
                    "name": stmt.excluded.name,
                    "team_name": stmt.excluded.team_name,
                    "is_active": stmt.excluded.is_active,
                },
            )
            await session.execute(stmt)

    @storage_operation("update many users")
    async def update_many(self, users: List[User], uow: Any = None) -> None:
        if not users:
            return
        async with self._session(uow) as session:
            for user in users:
                await session.execute(
                    update(models.User)
                    .where(models.User.id == user.id)
                    .values(is_active=user.is_active)
                )

    @storage_operation("deactivate many users")
    async def deactivate_many(self, user_ids: List[str], uow: Any = None) -> None:
        if not user_ids:
            return
        async with self._session(uow) as session:
            await session.execute(
                update(models.User)
                .where(models.User.id.in_(user_ids), models.User.is_active.is_(True))
                .values(is_active=False)
            )

    @storage_operation("get user stats")
    async def get_user_stats(self, user_id: str, uow: Any = None) -> UserStats:
        pr = models.PullRequest
        async with self._session(uow) as session:
            created, merged = (await session.execute(
                select(
                    func.count(pr.id),
                    func.coalesce(func.sum(case((pr.status == PRStatus.MERGED.value, 1), else_=0)), 0),
                ).where(pr.author_id == user_id)
            )).one()
            reviewed = await session.scalar(
                select(func.count())
                .select_from(models.ReviewAssignment)
                .where(models.ReviewAssignment.reviewer_id == user_id)
            )
        return UserStats(
            user_id=user_id,
            created_pr_count=int(created),
            reviewed_pr_count=int(reviewed or 0),
            merged_pr_count=int(merged),
        )


class SqlPullRequestRepository(_SqlRepository):
    async def _reviewers(self, session: AsyncSession, pr_id: str) -> List[str]:
        result = await session.scalars(
            select(models.ReviewAssignment.reviewer_id)
            .where(models.ReviewAssignment.pr_id == pr_id)
            .order_by(models.ReviewAssignment.reviewer_id)
        )
        return list(result.all())

    @storage_operation("save pull request")
    async def save(self, pr: PullRequest, uow: Any = None) -> None:
        async with self._session(uow) as session:
            session.add(models.PullRequest(
                id=pr.id,
                name=pr.name,
                author_id=pr.author_id,
                status=pr.status.value,
                created_at=pr.created_at or datetime.now(timezone.utc),
                merged_at=pr.merged_at,
            ))
            try:
                await session.flush()
            except IntegrityError:
                raise PRExists()

    @storage_operation("get pull request")
    async def get(self, pr_id: str, uow: Any = None, for_update: bool = False) -> PullRequest:
        async with self._session(uow) as session:
            row = await session.get(
                models.PullRequest, pr_id, populate_existing=True, with_for_update=for_update
            )
            if row is None:
                raise PRNotFound()
            return _to_pr(row, await self._reviewers(session, pr_id))

    @storage_operation("update pull request")
    async def update(self, pr: PullRequest, uow: Any = None) -> None:
        async with self._session(uow) as session:
            await session.execute(
                update(models.PullRequest)
                .where(models.PullRequest.id == pr.id)
                # a merged PR is frozen
                .where(models.PullRequest.status == PRStatus.OPEN.value)
                .values(
                    name=pr.name,
                    author_id=pr.author_id,
                    status=pr.status.value,
                    merged_at=pr.merged_at,
                )
            )

    @storage_operation("get PRs by reviewer")
    async def get_by_reviewer(self, reviewer_id: str, uow: Any = None) -> List[PullRequest]:
        async with self._session(uow) as session:
            result = await session.scalars(
                select(models.PullRequest)
                .join(models.ReviewAssignment, models.PullRequest.id == models.ReviewAssignment.pr_id)
                .where(models.ReviewAssignment.reviewer_id == reviewer_id)
                .order_by(models.PullRequest.created_at.desc())
            )
            rows = result.all()
            reviewers = await self._reviewers_batch(session, [row.id for row in rows])
            return [_to_pr(row, reviewers[row.id]) for row in rows]

    @storage_operation("get reviewers")
    async def get_reviewers(self, pr_id: str, uow: Any = None) -> List[str]:
        async with self._session(uow) as session:
            return await self._reviewers(session, pr_id)

    @storage_operation("assign reviewers")
    async def assign_reviewers(self, pr_id: str, reviewer_ids: List[str], uow: Any = None) -> None:
        if not reviewer_ids:
            return
        async with self._session(uow) as session:
            await session.execute(
                _insert(session, models.ReviewAssignment)
                .values([{"pr_id": pr_id, "reviewer_id": rid} for rid in reviewer_ids])
                .on_conflict_do_nothing(index_elements=["pr_id", "reviewer_id"])
            )

    @storage_operation("replace reviewer")
    async def replace_reviewer(
        self, pr_id: str, old_reviewer_id: str, new_reviewer_id: str, uow: Any = None
    ) -> None:
        # delete + insert instead of UPDATE: the new reviewer may already be
        # assigned and the pair is unique
        async with self._session(uow) as session:
            await session.execute(
                delete(models.ReviewAssignment).where(
                    models.ReviewAssignment.pr_id == pr_id,
                    models.ReviewAssignment.reviewer_id == old_reviewer_id,
                )
            )
            await session.execute(
                _insert(session, models.ReviewAssignment)
                .values(pr_id=pr_id, reviewer_id=new_reviewer_id)
                .on_conflict_do_nothing(index_elements=["pr_id", "reviewer_id"])
            )

    @storage_operation("remove reviewer")
    async def remove_reviewer(self, pr_id: str, reviewer_id: str, uow: Any = None) -> None:
        async with self._session(uow) as session:
            await session.execute(
                delete(models.ReviewAssignment).where(
                    models.ReviewAssignment.pr_id == pr_id,
                    models.ReviewAssignment.reviewer_id == reviewer_id,
                )
            )

    @storage_operation("get PR stats")
    async def get_stats(self, uow: Any = None) -> PRStats:
        pr = models.PullRequest
        counts = (
            select(
                models.ReviewAssignment.pr_id,
                func.count().label("reviewer_count"),
            )
            .group_by(models.ReviewAssignment.pr_id)
            .subquery()
        )
        query = (
            select(
                func.count(pr.id),
                func.coalesce(func.sum(case((pr.status == PRStatus.OPEN.value, 1), else_=0)), 0),
                func.coalesce(func.sum(case((pr.status == PRStatus.MERGED.value, 1), else_=0)), 0),
                # PRs without reviewers have no counts row and are left out of the average
                func.coalesce(func.avg(counts.c.reviewer_count), 0),
            )
            .select_from(pr)
            .outerjoin(counts, counts.c.pr_id == pr.id)
        )
        async with self._session(uow) as session:
            total, open_count, merged, avg_reviewers = (await session.execute(query)).one()
        return PRStats(
            total=int(total),
            open=int(open_count),
            merged=int(merged),
            avg_reviewers=float(avg_reviewers),
        )

    @storage_operation("get open PRs by team")
    async def get_open_prs_by_team(self, team_name: str, uow: Any = None) -> List[PullRequest]:
        async with self._session(uow) as session:
            result = await session.scalars(
                select(models.PullRequest)
                .join(models.User, models.PullRequest.author_id == models.User.id)
                .where(
                    models.User.team_name == team_name,
                    models.User.is_active.is_(True),
                    models.PullRequest.status == PRStatus.OPEN.value,
                )
                .order_by(models.PullRequest.created_at.desc())
            )
            # reviewers are fetched separately with get_reviewers_batch
            return [_to_pr(row) for row in result.all()]

    async def _reviewers_batch(self, session: AsyncSession, pr_ids: List[str]) -> Dict[str, List[str]]:
        batch: Dict[str, List[str]] = {pr_id: [] for pr_id in pr_ids}
        if not pr_ids:
            return batch
        result = await session.execute(
            select(models.ReviewAssignment.pr_id, models.ReviewAssignment.reviewer_id)
            .where(models.ReviewAssignment.pr_id.in_(pr_ids))
            .order_by(models.ReviewAssignment.pr_id, models.ReviewAssignment.reviewer_id)
        )
        for pr_id, reviewer_id in result.all():
            batch[pr_id].append(reviewer_id)
        return batch

    @storage_operation("get reviewers batch")
    async def get_reviewers_batch(self, pr_ids: List[str], uow: Any = None) -> Dict[str, List[str]]:
        async with self._session(uow) as session:
            return await self._reviewers_batch(session, pr_ids)


class SqlTransactionCoordinator:
    def __init__(self, session_maker: async_sessionmaker):
        self._session_maker = session_maker

    async def do(self, fn) -> None:
        await self.do_tx(fn)

    async def do_tx(self, fn):
        """Run ``fn(session)`` in one transaction.

        Commits when ``fn`` returns, rolls back on any exception (cancellation
        included). Exceptions raised by ``fn`` propagate unchanged, a failing
        begin/commit is reported as ``StorageError``.
        """
        async with self._session_maker() as session:
            try:
                async with session.begin():
                    return await fn(session)
            except SQLAlchemyError as exc:
                logger.error("transaction_failed", error=str(exc))
                raise StorageError("commit tx", exc) from exc
