"""In-memory persistence gateway, used as a test fake.

Transactions run one at a time under an ``asyncio.Lock``. Each one works on a
deep copy of the committed state, which replaces the committed state only if
the callback returns normally.
"""
import asyncio
import copy
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from models.entities import PRStats, PRStatus, PullRequest, Team, User, UserStats
from services.errors import PRExists, PRNotFound, TeamExists, TeamNotFound, UserNotFound


class MemoryState:
    def __init__(self):
        self.teams: Set[str] = set()
        self.users: Dict[str, User] = {}
        self.prs: Dict[str, PullRequest] = {}
        self.assignments: Dict[str, Set[str]] = {}

    def copy(self) -> "MemoryState":
        return copy.deepcopy(self)


class InMemoryStore:
    def __init__(self):
        self.state = MemoryState()
        self.lock = asyncio.Lock()


class _MemoryRepository:
    def __init__(self, store: InMemoryStore):
        self._store = store

    def _state(self, uow: Optional[MemoryState]) -> MemoryState:
        return uow if uow is not None else self._store.state


class MemoryTeamRepository(_MemoryRepository):
    async def get(self, name: str, uow: Any = None) -> Team:
        state = self._state(uow)
        if name not in state.teams:
            raise TeamNotFound()
        members = [replace(u) for u in state.users.values() if u.team_name == name]
        return Team(name=name, members=sorted(members, key=lambda u: u.id))

    async def save(self, team: Team, uow: Any = None) -> None:
        state = self._state(uow)
        if team.name in state.teams:
            raise TeamExists()
        state.teams.add(team.name)


class MemoryUserRepository(_MemoryRepository):
    async def get(self, user_id: str, uow: Any = None) -> User:
        user = self._state(uow).users.get(user_id)
        if user is None:
            raise UserNotFound()
        return replace(user)

    async def get_by_team(self, team_name: str, uow: Any = None) -> List[User]:
        users = self._state(uow).users.values()
        return sorted((replace(u) for u in users if u.team_name == team_name), key=lambda u: u.id)

    async def get_active_by_team(
        self, team_name: str, exclude_id: Optional[str] = None, uow: Any = None
    ) -> List[User]:
        members = await self.get_by_team(team_name, uow=uow)
        return [u for u in members if u.is_active and u.id != exclude_id]

    async def save_update_many(self, users: List[User], uow: Any = None) -> None:
        state = self._state(uow)
        for user in users:
            state.users[user.id] = replace(user)

    async def update_many(self, users: List[User], uow: Any = None) -> None:
        state = self._state(uow)
        for user in users:
            if user.id in state.users:
                state.users[user.id].is_active = user.is_active

    async def deactivate_many(self, user_ids: List[str], uow: Any = None) -> None:
        state = self._state(uow)
        for user_id in user_ids:
            if user_id in state.users:
                state.users[user_id].is_active = False

    async def get_user_stats(self, user_id: str, uow: Any = None) -> UserStats:
        state = self._state(uow)
        authored = [pr for pr in state.prs.values() if pr.author_id == user_id]
        return UserStats(
            user_id=user_id,
            created_pr_count=len(authored),
            reviewed_pr_count=sum(1 for ids in state.assignments.values() if user_id in ids),
            merged_pr_count=sum(1 for pr in authored if pr.status == PRStatus.MERGED),
        )


class MemoryPullRequestRepository(_MemoryRepository):
    def _snapshot(self, state: MemoryState, pr: PullRequest) -> PullRequest:
        return replace(pr, reviewers=sorted(state.assignments.get(pr.id, ())))

    async def save(self, pr: PullRequest, uow: Any = None) -> None:
        state = self._state(uow)
        if pr.id in state.prs:
            raise PRExists()
        state.prs[pr.id] = replace(
            pr, reviewers=[], created_at=pr.created_at or datetime.now(timezone.utc)
        )
        state.assignments.setdefault(pr.id, set())

    async def get(self, pr_id: str, uow: Any = None, for_update: bool = False) -> PullRequest:
        # transactions already run one at a time, for_update needs no extra lock
        state = self._state(uow)
        pr = state.prs.get(pr_id)
        if pr is None:
            raise PRNotFound()
        return self._snapshot(state, pr)

    async def update(self, pr: PullRequest, uow: Any = None) -> None:
        state = self._state(uow)
        stored = state.prs.get(pr.id)
        if stored is None or stored.status == PRStatus.MERGED:
            return
        stored.name = pr.name
        stored.author_id = pr.author_id
        stored.status = pr.status
        stored.merged_at = pr.merged_at

    async def get_by_reviewer(self, reviewer_id: str, uow: Any = None) -> List[PullRequest]:
        state = self._state(uow)
        prs = [
            self._snapshot(state, pr)
            for pr in state.prs.values()
            if reviewer_id in state.assignments.get(pr.id, ())
        ]
        return sorted(prs, key=lambda pr: pr.created_at, reverse=True)

    async def get_reviewers(self, pr_id: str, uow: Any = None) -> List[str]:
        return sorted(self._state(uow).assignments.get(pr_id, ()))

    async def assign_reviewers(self, pr_id: str, reviewer_ids: List[str], uow: Any = None) -> None:
        if not reviewer_ids:
            return
        self._state(uow).assignments.setdefault(pr_id, set()).update(reviewer_ids)

    async def replace_reviewer(
        self, pr_id: str, old_reviewer_id: str, new_reviewer_id: str, uow: Any = None
    ) -> None:
        assigned = self._state(uow).assignments.setdefault(pr_id, set())
        assigned.discard(old_reviewer_id)
        assigned.add(new_reviewer_id)

    async def remove_reviewer(self, pr_id: str, reviewer_id: str, uow: Any = None) -> None:
        self._state(uow).assignments.get(pr_id, set()).discard(reviewer_id)

    async def get_stats(self, uow: Any = None) -> PRStats:
        state = self._state(uow)
        prs = list(state.prs.values())
        if not prs:
            return PRStats()
        # only PRs that have reviewers take part in the average
        reviewer_counts = [n for n in (len(state.assignments.get(pr.id, ())) for pr in prs) if n]
        return PRStats(
            total=len(prs),
            open=sum(1 for pr in prs if pr.status == PRStatus.OPEN),
            merged=sum(1 for pr in prs if pr.status == PRStatus.MERGED),
            avg_reviewers=sum(reviewer_counts) / len(reviewer_counts) if reviewer_counts else 0.0,
        )

    async def get_open_prs_by_team(self, team_name: str, uow: Any = None) -> List[PullRequest]:
        state = self._state(uow)
        prs = []
        for pr in state.prs.values():
            author = state.users.get(pr.author_id)
            if author is None or author.team_name != team_name or not author.is_active:
                continue
            if pr.status == PRStatus.OPEN:
                prs.append(replace(pr, reviewers=[]))
        return sorted(prs, key=lambda pr: pr.created_at, reverse=True)

    async def get_reviewers_batch(self, pr_ids: List[str], uow: Any = None) -> Dict[str, List[str]]:
        state = self._state(uow)
        return {pr_id: sorted(state.assignments.get(pr_id, ())) for pr_id in pr_ids}


class MemoryTransactionCoordinator:
    def __init__(self, store: InMemoryStore):
        self._store = store

    async def do(self, fn) -> None:
        await self.do_tx(fn)

    async def do_tx(self, fn):
        async with self._store.lock:
            work = self._store.state.copy()
            result = await fn(work)
            self._store.state = work
            return result
