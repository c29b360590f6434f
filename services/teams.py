from dataclasses import replace
from typing import List

from core.logging import get_logger
from models.entities import DeactivationResult, PRStatus, Reassignment, Team
from services.assignment import take_random
from services.base import BaseService
from services.errors import EmptyName, TeamExists, TeamNotFound, UserNotInTeam


logger = get_logger(__name__)


class TeamService(BaseService):
    async def add_team(self, team: Team) -> Team:
        """
        POST /team/add
        Create a team and create/update its members. Existing users move to the new team.
        """
        if not team.name:
            raise EmptyName()

        try:
            await self.teams.get(team.name)
        except TeamNotFound:
            pass
        else:
            raise TeamExists()

        members = [replace(member, team_name=team.name) for member in team.members]

        async def create(uow) -> Team:
            await self.teams.save(Team(name=team.name), uow=uow)
            await self.users.save_update_many(members, uow=uow)
            return await self.teams.get(team.name, uow=uow)

        created = await self.tx.do_tx(create)
        logger.info("team_created", team_name=team.name, members=len(created.members))
        return created

    async def get_team(self, team_name: str) -> Team:
        """
        GET /team/get
        """
        return await self.teams.get(team_name)

    async def deactivate_users_and_reassign(self, team_name: str, user_ids: List[str]) -> DeactivationResult:
        """
        Deactivate ``user_ids`` and take them off every open PR of the team.

        Each affected reviewer is replaced by a random active teammate who is
        neither the PR author nor already reviewing that PR, or simply removed
        when no such teammate is left. A candidate is used at most once per
        PR but may be picked for several PRs.
        """
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return DeactivationResult(team_name=team_name)

        await self.teams.get(team_name)
        member_ids = {member.id for member in await self.users.get_by_team(team_name)}
        for user_id in user_ids:
            if user_id not in member_ids:
                raise UserNotInTeam(f"user {user_id} is not a member of team {team_name}")

        deactivated = set(user_ids)

        async def cascade(uow) -> List[Reassignment]:
            # read before deactivating so PRs authored by the leaving users are included
            open_prs = await self.prs.get_open_prs_by_team(team_name, uow=uow)
            await self.users.deactivate_many(user_ids, uow=uow)
            if not open_prs:
                return []

            reviewers_by_pr = await self.prs.get_reviewers_batch([pr.id for pr in open_prs], uow=uow)
            active_members = await self.users.get_active_by_team(team_name, uow=uow)

            reassignments = []
            for pr in open_prs:
                if pr.status != PRStatus.OPEN:
                    continue
                current = reviewers_by_pr.get(pr.id, [])
                to_replace = [rid for rid in current if rid in deactivated]
                if not to_replace:
                    continue

                pool = [
                    u.id for u in active_members
                    if u.id != pr.author_id and u.id not in current
                ]
                for old_id in to_replace:
                    new_id = take_random(pool, self.rng)
                    if new_id is None:
                        await self.prs.remove_reviewer(pr.id, old_id, uow=uow)
                    else:
                        await self.prs.replace_reviewer(pr.id, old_id, new_id, uow=uow)
                    reassignments.append(Reassignment(pr.id, old_id, new_id))
            return reassignments

        reassignments = await self.tx.do_tx(cascade)
        logger.info(
            "users_deactivated",
            team_name=team_name,
            user_ids=user_ids,
            reassignments=len(reassignments),
        )
        return DeactivationResult(
            team_name=team_name,
            deactivated_users=user_ids,
            reassignments=reassignments,
        )

    async def deactivate_team(self, team_name: str) -> DeactivationResult:
        """
        POST /team/bulkDeactivate
        Deactivate every active member of the team with safe reviewer reassignment
        """
        team = await self.teams.get(team_name)
        active_ids = [member.id for member in team.members if member.is_active]
        return await self.deactivate_users_and_reassign(team_name, active_ids)
