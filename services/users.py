from typing import List

from core.logging import get_logger
from models.entities import PullRequest, User, UserStats
from services.base import BaseService


logger = get_logger(__name__)


class UserService(BaseService):
    async def set_user_active(self, user_id: str, is_active: bool) -> User:
        """
        POST /users/setIsActive
        Update user's is_active flag. Existing review assignments are kept.
        """
        await self.users.get(user_id)

        async def update(uow) -> None:
            user = await self.users.get(user_id, uow=uow)
            user.is_active = is_active
            await self.users.update_many([user], uow=uow)

        await self.tx.do(update)
        logger.info("user_activity_changed", user_id=user_id, is_active=is_active)
        return await self.users.get(user_id)

    async def get_user_review_prs(self, user_id: str) -> List[PullRequest]:
        """
        GET /users/getReview
        PRs where the user is currently assigned as a reviewer, newest first
        """
        await self.users.get(user_id)
        return await self.prs.get_by_reviewer(user_id)

    async def get_user_stats(self, user_id: str) -> UserStats:
        """
        GET /users/stats
        """
        await self.users.get(user_id)
        return await self.users.get_user_stats(user_id)
