"""Persistence gateway contracts.

Every method accepts ``uow``, the unit-of-work handle that
``TransactionCoordinator.do_tx`` hands to its callback. ``uow=None`` runs the
call on its own, outside any transaction. Missing rows are reported with the
matching ``NotFoundError`` subclass, other storage failures with
``StorageError``.

``PullRequestRepository.get(..., for_update=True)`` locks the PR row until the
surrounding transaction ends, so concurrent merges and reassignments of the
same PR run one after another.
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, TypeVar

from models.entities import PRStats, PullRequest, Team, User, UserStats


T = TypeVar("T")


class TeamRepository(Protocol):
    async def get(self, name: str, uow: Any = None) -> Team: ...

    async def save(self, team: Team, uow: Any = None) -> None: ...


class UserRepository(Protocol):
    async def get(self, user_id: str, uow: Any = None) -> User: ...

    async def get_by_team(self, team_name: str, uow: Any = None) -> List[User]: ...

    async def get_active_by_team(
        self, team_name: str, exclude_id: Optional[str] = None, uow: Any = None
    ) -> List[User]: ...

    async def save_update_many(self, users: List[User], uow: Any = None) -> None: ...

    async def update_many(self, users: List[User], uow: Any = None) -> None: ...

    async def deactivate_many(self, user_ids: List[str], uow: Any = None) -> None: ...

    async def get_user_stats(self, user_id: str, uow: Any = None) -> UserStats: ...


class PullRequestRepository(Protocol):
    async def save(self, pr: PullRequest, uow: Any = None) -> None: ...

    async def get(self, pr_id: str, uow: Any = None, for_update: bool = False) -> PullRequest: ...

    async def update(self, pr: PullRequest, uow: Any = None) -> None: ...

    async def get_by_reviewer(self, reviewer_id: str, uow: Any = None) -> List[PullRequest]: ...

    async def get_reviewers(self, pr_id: str, uow: Any = None) -> List[str]: ...

    async def assign_reviewers(self, pr_id: str, reviewer_ids: List[str], uow: Any = None) -> None: ...

    async def replace_reviewer(
        self, pr_id: str, old_reviewer_id: str, new_reviewer_id: str, uow: Any = None
    ) -> None: ...

    async def remove_reviewer(self, pr_id: str, reviewer_id: str, uow: Any = None) -> None: ...

    async def get_stats(self, uow: Any = None) -> PRStats: ...

    async def get_open_prs_by_team(self, team_name: str, uow: Any = None) -> List[PullRequest]: ...

    async def get_reviewers_batch(self, pr_ids: List[str], uow: Any = None) -> Dict[str, List[str]]: ...


class TransactionCoordinator(Protocol):
    async def do(self, fn: Callable[[Any], Awaitable[None]]) -> None: ...

    async def do_tx(self, fn: Callable[[Any], Awaitable[T]]) -> T: ...
