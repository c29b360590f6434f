import pytest

from services.errors import TeamNotFound, UserNotInTeam


@pytest.mark.asyncio
async def test_deactivate_only_teammate_removes_reviewer(service, add_team):
    await add_team("backend", ["a", "r1"])
    await service.create_pr("pr-1", "Add feature", "a")

    result = await service.deactivate_users_and_reassign("backend", ["r1"])

    pr = await service.merge_pr("pr-1")
    assert pr.reviewers == []
    assert result.deactivated_users == ["r1"]
    assert [(r.pr_id, r.old_reviewer_id, r.new_reviewer_id) for r in result.reassignments] == [
        ("pr-1", "r1", None)
    ]
    assert (await service.users.get("r1")).is_active is False


@pytest.mark.asyncio
async def test_deactivate_replaces_with_active_teammate(service, add_team):
    await add_team("backend", ["a", "r1", "r2", "r3"])
    pr = await service.create_pr("pr-1", "Add feature", "a")
    gone = pr.reviewers[0]
    spare = ({"r1", "r2", "r3"} - set(pr.reviewers)).pop()

    await service.deactivate_users_and_reassign("backend", [gone])

    after = await service.prs.get("pr-1")
    assert gone not in after.reviewers
    assert spare in after.reviewers
    assert len(after.reviewers) == 2


@pytest.mark.asyncio
async def test_cascade_clears_every_open_pr_and_never_grows(service, add_team):
    await add_team("backend", ["a", "b", "r1", "r2", "r3", "r4"])
    for i, author in enumerate(["a", "a", "b", "b", "r1"]):
        await service.create_pr(f"pr-{i}", f"Change {i}", author)
    before = {pr_id: await service.prs.get_reviewers(pr_id) for pr_id in
              [f"pr-{i}" for i in range(5)]}

    ids = ["r2", "r3"]
    await service.deactivate_users_and_reassign("backend", ids)

    for pr_id, old_reviewers in before.items():
        reviewers = await service.prs.get_reviewers(pr_id)
        assert not set(reviewers) & set(ids)
        assert len(reviewers) <= len(old_reviewers)
        assert len(reviewers) == len(set(reviewers))


@pytest.mark.asyncio
async def test_cascade_does_not_touch_merged_prs(service, add_team):
    await add_team("backend", ["a", "r1", "r2", "r3"])
    pr = await service.create_pr("pr-1", "Add feature", "a")
    merged = await service.merge_pr("pr-1")

    await service.deactivate_users_and_reassign("backend", pr.reviewers)

    assert await service.prs.get("pr-1") == merged


@pytest.mark.asyncio
async def test_cascade_never_reuses_candidate_on_same_pr(service, add_team):
    await add_team("backend", ["a", "r1", "r2", "r3"])
    pr = await service.create_pr("pr-1", "Add feature", "a")

    # both reviewers leave, only one spare teammate remains
    result = await service.deactivate_users_and_reassign("backend", pr.reviewers)

    after = await service.prs.get("pr-1")
    spare = ({"r1", "r2", "r3"} - set(pr.reviewers)).pop()
    assert after.reviewers == [spare]
    new_ids = [r.new_reviewer_id for r in result.reassignments]
    assert sorted(new_ids, key=str) == sorted([spare, None], key=str)


@pytest.mark.asyncio
async def test_cascade_may_reuse_candidate_across_prs(service, add_team):
    await add_team("backend", ["a", "b", "r1", "r2"])
    await service.create_pr("pr-a", "From a", "a")
    await service.create_pr("pr-b", "From b", "b")

    await service.deactivate_users_and_reassign("backend", ["r1"])

    # r2 is the only active teammate left for both PRs
    assert "r2" in await service.prs.get_reviewers("pr-a")
    assert "r2" in await service.prs.get_reviewers("pr-b")


@pytest.mark.asyncio
async def test_deactivate_empty_list_is_noop(service, add_team):
    await add_team("backend", ["a", "r1"])

    result = await service.deactivate_users_and_reassign("backend", [])

    assert result.deactivated_users == []
    assert result.reassignments == []
    assert (await service.users.get("r1")).is_active is True


@pytest.mark.asyncio
async def test_deactivate_unknown_team(service):
    with pytest.raises(TeamNotFound):
        await service.deactivate_users_and_reassign("ghosts", ["u1"])


@pytest.mark.asyncio
async def test_deactivate_user_from_other_team_changes_nothing(service, add_team):
    await add_team("backend", ["a", "r1"])
    await add_team("frontend", ["f1"])

    with pytest.raises(UserNotInTeam):
        await service.deactivate_users_and_reassign("backend", ["r1", "f1"])

    assert (await service.users.get("r1")).is_active is True
    assert (await service.users.get("f1")).is_active is True


@pytest.mark.asyncio
async def test_deactivate_team_deactivates_all_active_members(service, add_team):
    await add_team("marketing", ["u16", "u17", "u18"])
    await service.create_pr("pr-1005", "Campaign", "u16")

    result = await service.deactivate_team("marketing")

    assert sorted(result.deactivated_users) == ["u16", "u17", "u18"]
    team = await service.get_team("marketing")
    assert not any(m.is_active for m in team.members)
    # nobody is left to review, the author's PR loses its reviewers
    assert await service.prs.get_reviewers("pr-1005") == []
