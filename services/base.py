import random
from typing import Optional

from repositories.base import (
    PullRequestRepository,
    TeamRepository,
    TransactionCoordinator,
    UserRepository,
)


class BaseService:
    def __init__(
        self,
        teams: TeamRepository,
        users: UserRepository,
        prs: PullRequestRepository,
        tx: TransactionCoordinator,
        rng: Optional[random.Random] = None,
    ):
        self.teams = teams
        self.users = users
        self.prs = prs
        self.tx = tx
        self.rng = rng if rng is not None else random.Random()
