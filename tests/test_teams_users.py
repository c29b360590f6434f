import pytest

from models.entities import Team, User
from services.errors import EmptyName, TeamExists, TeamNotFound, UserNotFound


@pytest.mark.asyncio
async def test_add_team_returns_members_sorted(service):
    team = Team(
        name="backend",
        members=[
            User(id="u2", username="Bob"),
            User(id="u1", username="Alice", is_active=False),
        ],
    )

    created = await service.add_team(team)

    assert created.name == "backend"
    assert [m.id for m in created.members] == ["u1", "u2"]
    assert all(m.team_name == "backend" for m in created.members)
    assert created.members[0].is_active is False
    assert await service.get_team("backend") == created


@pytest.mark.asyncio
async def test_add_team_without_name(service):
    with pytest.raises(EmptyName):
        await service.add_team(Team(name="", members=[User(id="u1", username="Alice")]))


@pytest.mark.asyncio
async def test_add_team_twice(service, add_team):
    await add_team("backend", ["u1"])

    with pytest.raises(TeamExists):
        await add_team("backend", ["u2"])

    team = await service.get_team("backend")
    assert [m.id for m in team.members] == ["u1"]


@pytest.mark.asyncio
async def test_add_team_moves_existing_user(service, add_team):
    await add_team("backend", ["u1", "u2"])
    await service.add_team(Team(name="payments", members=[User(id="u2", username="Bobby")]))

    backend = await service.get_team("backend")
    payments = await service.get_team("payments")
    assert [m.id for m in backend.members] == ["u1"]
    assert [(m.id, m.username) for m in payments.members] == [("u2", "Bobby")]


@pytest.mark.asyncio
async def test_get_unknown_team(service):
    with pytest.raises(TeamNotFound):
        await service.get_team("ghosts")


@pytest.mark.asyncio
async def test_set_user_active(service, add_team):
    await add_team("backend", ["u1"])

    user = await service.set_user_active("u1", False)

    assert user.is_active is False
    assert user.team_name == "backend"
    assert (await service.users.get("u1")).is_active is False


@pytest.mark.asyncio
async def test_set_user_active_keeps_assignments(service, add_team):
    await add_team("backend", ["a", "r1"])
    await service.create_pr("pr-1", "Add feature", "a")

    await service.set_user_active("r1", False)

    assert await service.prs.get_reviewers("pr-1") == ["r1"]


@pytest.mark.asyncio
async def test_set_unknown_user_active(service):
    with pytest.raises(UserNotFound):
        await service.set_user_active("nobody", True)


@pytest.mark.asyncio
async def test_review_prs_newest_first(service, add_team):
    await add_team("backend", ["a", "r1"])
    await service.create_pr("pr-1", "First", "a")
    await service.create_pr("pr-2", "Second", "a")
    await service.merge_pr("pr-1")

    prs = await service.get_user_review_prs("r1")

    assert [pr.id for pr in prs] == ["pr-2", "pr-1"]
    assert [pr.status.value for pr in prs] == ["OPEN", "MERGED"]


@pytest.mark.asyncio
async def test_review_prs_empty_and_unknown_user(service, add_team):
    await add_team("backend", ["a"])

    assert await service.get_user_review_prs("a") == []
    with pytest.raises(UserNotFound):
        await service.get_user_review_prs("nobody")


@pytest.mark.asyncio
async def test_user_stats(service, add_team):
    await add_team("backend", ["a", "r1"])
    await service.create_pr("pr-1", "First", "a")
    await service.create_pr("pr-2", "Second", "a")
    await service.create_pr("pr-3", "Third", "r1")
    await service.merge_pr("pr-2")

    author = await service.get_user_stats("a")
    reviewer = await service.get_user_stats("r1")

    assert (author.created_pr_count, author.reviewed_pr_count, author.merged_pr_count) == (2, 1, 1)
    assert (reviewer.created_pr_count, reviewer.reviewed_pr_count, reviewer.merged_pr_count) == (1, 2, 0)


@pytest.mark.asyncio
async def test_user_stats_unknown_user(service):
    with pytest.raises(UserNotFound):
        await service.get_user_stats("nobody")
