import random
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from repositories.memory import (
    InMemoryStore,
    MemoryPullRequestRepository,
    MemoryTeamRepository,
    MemoryTransactionCoordinator,
    MemoryUserRepository,
)
from repositories.sql import (
    SqlPullRequestRepository,
    SqlTeamRepository,
    SqlTransactionCoordinator,
    SqlUserRepository,
)
from services.pull_request import PullRequestService
from services.teams import TeamService
from services.users import UserService


class Service(TeamService, UserService, PullRequestService):
    """All use cases behind one object, the way the HTTP routes consume them."""


def build_sql_service(session_maker: async_sessionmaker, rng: Optional[random.Random] = None) -> Service:
    return Service(
        teams=SqlTeamRepository(session_maker),
        users=SqlUserRepository(session_maker),
        prs=SqlPullRequestRepository(session_maker),
        tx=SqlTransactionCoordinator(session_maker),
        rng=rng,
    )


def build_memory_service(store: Optional[InMemoryStore] = None, rng: Optional[random.Random] = None) -> Service:
    store = store or InMemoryStore()
    return Service(
        teams=MemoryTeamRepository(store),
        users=MemoryUserRepository(store),
        prs=MemoryPullRequestRepository(store),
        tx=MemoryTransactionCoordinator(store),
        rng=rng,
    )
