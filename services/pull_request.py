from datetime import datetime, timezone
from typing import Optional, Tuple

from core.logging import get_logger
from models.entities import PRStats, PRStatus, PullRequest
from services.assignment import MAX_REVIEWERS, select_reviewers, take_random
from services.base import BaseService
from services.errors import AlreadyMerged, NotReviewer, PRExists, PRNotFound


logger = get_logger(__name__)


class PullRequestService(BaseService):
    async def create_pr(self, pr_id: str, name: str, author_id: str) -> PullRequest:
        """
        POST /pullRequest/create
        Create a PR and automatically assign up to 2 active reviewers from the author's team
        """
        author = await self.users.get(author_id)

        try:
            await self.prs.get(pr_id)
        except PRNotFound:
            pass
        else:
            raise PRExists()

        candidates = []
        if author.team_name is not None:
            candidates = await self.users.get_active_by_team(author.team_name, author_id)
        reviewer_ids = select_reviewers(candidates, MAX_REVIEWERS, self.rng)

        async def create(uow) -> PullRequest:
            await self.prs.save(
                PullRequest(
                    id=pr_id,
                    name=name,
                    author_id=author_id,
                    status=PRStatus.OPEN,
                    created_at=datetime.now(timezone.utc),
                ),
                uow=uow,
            )
            await self.prs.assign_reviewers(pr_id, reviewer_ids, uow=uow)
            return await self.prs.get(pr_id, uow=uow)

        pr = await self.tx.do_tx(create)
        logger.info("pr_created", pr_id=pr_id, author_id=author_id, reviewers=pr.reviewers)
        return pr

    async def merge_pr(self, pr_id: str) -> PullRequest:
        """
        POST /pullRequest/merge
        Mark a PR as merged (idempotent operation)
        """
        pr = await self.prs.get(pr_id)
        if pr.status == PRStatus.MERGED:
            return pr

        async def merge(uow) -> PullRequest:
            # another request may have merged it since the check above
            current = await self.prs.get(pr_id, uow=uow, for_update=True)
            if current.status == PRStatus.MERGED:
                return current

            current.status = PRStatus.MERGED
            current.merged_at = datetime.now(timezone.utc)
            # update() leaves an already merged row alone, the read returns what is stored
            await self.prs.update(current, uow=uow)
            return await self.prs.get(pr_id, uow=uow)

        merged = await self.tx.do_tx(merge)
        logger.info("pr_merged", pr_id=pr_id, merged_at=merged.merged_at.isoformat())
        return merged

    async def reassign_reviewer(self, pr_id: str, old_reviewer_id: str) -> Tuple[PullRequest, Optional[str]]:
        """
        POST /pullRequest/reassign
        Replace a reviewer with a random active member of their team.
        Returns the updated PR and the new reviewer id, or None when nobody
        could take over and the reviewer was just removed.
        """
        pr = await self.prs.get(pr_id)
        if pr.status == PRStatus.MERGED:
            raise AlreadyMerged()

        async def reassign(uow) -> Tuple[PullRequest, Optional[str]]:
            current = await self.prs.get(pr_id, uow=uow, for_update=True)
            if current.status == PRStatus.MERGED:
                raise AlreadyMerged()

            reviewers = await self.prs.get_reviewers(pr_id, uow=uow)
            if old_reviewer_id not in reviewers:
                raise NotReviewer()

            old_reviewer = await self.users.get(old_reviewer_id, uow=uow)
            pool = []
            if old_reviewer.team_name is not None:
                candidates = await self.users.get_active_by_team(
                    old_reviewer.team_name, current.author_id, uow=uow
                )
                pool = [c.id for c in candidates if c.id != old_reviewer_id]

            new_reviewer_id = take_random(pool, self.rng)
            if new_reviewer_id is None:
                await self.prs.remove_reviewer(pr_id, old_reviewer_id, uow=uow)
            else:
                await self.prs.replace_reviewer(pr_id, old_reviewer_id, new_reviewer_id, uow=uow)

            return await self.prs.get(pr_id, uow=uow), new_reviewer_id

        updated, replaced_by = await self.tx.do_tx(reassign)
        logger.info(
            "reviewer_reassigned",
            pr_id=pr_id,
            old_reviewer_id=old_reviewer_id,
            replaced_by=replaced_by,
        )
        return updated, replaced_by

    async def get_pr_stats(self) -> PRStats:
        """
        GET /pullRequest/stats
        """
        return await self.prs.get_stats()
