import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from models.entities import PRStatus, Team, User
from services.errors import AlreadyMerged, TeamNotFound


class InterleavedTx:
    """Runs ``before`` right ahead of the next transaction, as if another
    request had committed between the advisory read and the transaction."""

    def __init__(self, tx, before):
        self._tx = tx
        self._before = before

    async def do(self, fn) -> None:
        await self.do_tx(fn)

    async def do_tx(self, fn):
        before, self._before = self._before, None
        if before is not None:
            await before()
        return await self._tx.do_tx(fn)


async def _add_team(service, name, member_ids):
    await service.add_team(Team(
        name=name,
        members=[User(id=uid, username=f"User {uid}") for uid in member_ids],
    ))


@pytest.mark.asyncio
async def test_merge_inside_transaction_sees_earlier_merge(service, add_team):
    await add_team("backend", ["a", "r1", "r2"])
    await service.create_pr("pr-1", "Add feature", "a")

    first = {}

    async def merge_first():
        first["pr"] = await service.merge_pr("pr-1")

    service.tx = InterleavedTx(service.tx, merge_first)
    pr = await service.merge_pr("pr-1")

    assert pr.status == PRStatus.MERGED
    assert pr.merged_at == first["pr"].merged_at
    assert pr == await service.prs.get("pr-1")


@pytest.mark.asyncio
async def test_reassign_inside_transaction_sees_earlier_merge(service, add_team):
    await add_team("backend", ["a", "r1", "r2", "r3"])
    pr = await service.create_pr("pr-1", "Add feature", "a")

    async def merge_first():
        await service.merge_pr("pr-1")

    service.tx = InterleavedTx(service.tx, merge_first)
    with pytest.raises(AlreadyMerged):
        await service.reassign_reviewer("pr-1", pr.reviewers[0])

    merged = await service.prs.get("pr-1")
    assert merged.reviewers == sorted(pr.reviewers)


@pytest.mark.asyncio
async def test_concurrent_merges_agree_on_merged_at(concurrent_service):
    service = concurrent_service
    await _add_team(service, "backend", ["a", "r1", "r2"])
    await service.create_pr("pr-1", "Add feature", "a")

    results = await asyncio.gather(*[service.merge_pr("pr-1") for _ in range(5)])

    stored = await service.prs.get("pr-1")
    assert stored.status == PRStatus.MERGED
    assert {pr.merged_at for pr in results} == {stored.merged_at}


@pytest.mark.asyncio
async def test_concurrent_reassign_and_merge(concurrent_service):
    service = concurrent_service
    await _add_team(service, "backend", ["a", "r1", "r2", "r3", "r4"])
    pr = await service.create_pr("pr-1", "Add feature", "a")

    reassigned, merged = await asyncio.gather(
        service.reassign_reviewer("pr-1", pr.reviewers[0]),
        service.merge_pr("pr-1"),
        return_exceptions=True,
    )

    assert not isinstance(merged, Exception)
    assert isinstance(reassigned, (tuple, AlreadyMerged))
    stored = await service.prs.get("pr-1")
    assert stored.status == PRStatus.MERGED
    assert stored.merged_at == merged.merged_at
    assert "a" not in stored.reviewers
    assert len(stored.reviewers) == len(set(stored.reviewers)) <= 2


@pytest.mark.asyncio
async def test_cancelled_transaction_is_rolled_back(service):
    started = asyncio.Event()

    async def slow(uow):
        await service.teams.save(Team(name="backend"), uow=uow)
        started.set()
        await asyncio.sleep(60)

    task = asyncio.create_task(service.tx.do_tx(slow))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    with pytest.raises(TeamNotFound):
        await service.get_team("backend")
    # nothing is left holding the store
    await _add_team(service, "frontend", ["f1"])
    assert [m.id for m in (await service.get_team("frontend")).members] == ["f1"]


@pytest.mark.asyncio
async def test_update_leaves_merged_pr_alone(service, add_team):
    await add_team("backend", ["a", "r1"])
    await service.create_pr("pr-1", "Add feature", "a")
    merged = await service.merge_pr("pr-1")

    late = await service.prs.get("pr-1")
    late.name = "Renamed"
    late.merged_at = datetime.now(timezone.utc) + timedelta(hours=1)
    await service.prs.update(late)

    assert await service.prs.get("pr-1") == merged
