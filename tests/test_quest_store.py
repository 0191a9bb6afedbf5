import asyncio
import datetime as dt

import pytest

sqlalchemy = pytest.importorskip("sqlalchemy")
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from codeclimb import quest_state
from codeclimb.db import Base
from codeclimb.errors import QuestConflictError
from codeclimb.quest_store import SqlQuestRepository
from codeclimb.types import QuestFilter

from helpers import T0, make_quest

async def _setup_repo():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    from codeclimb import models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    return engine, SqlQuestRepository(Session)

def test_save_and_load_round_trip():
    async def _run():
        engine, repo = await _setup_repo()
        quest = make_quest(status="IN_PROGRESS", completed=1)
        quest.progress.started_at = T0
        saved = await repo.save(quest)
        assert saved.version == 1
        loaded = await repo.get("q1")
        assert loaded is not None
        assert loaded.status == "IN_PROGRESS"
        assert [s.id for s in loaded.steps] == ["step-1", "step-2", "step-3"]
        assert loaded.step("step-1").is_completed is True
        assert loaded.step("step-1").completed_at == T0
        assert loaded.progress.started_at == T0
        assert loaded.progress.completed_steps == 1
        assert loaded.progress.total_steps == 3
        assert loaded.tags == ["React"]
        assert await repo.get("missing") is None
        await engine.dispose()
    asyncio.run(_run())

def test_save_derives_counters_from_steps():
    async def _run():
        engine, repo = await _setup_repo()
        quest = make_quest(status="IN_PROGRESS", completed=2)
        quest.progress.completed_steps = 0
        quest.progress.total_steps = 99
        quest.steps[0].time_spent = 30
        saved = await repo.save(quest)
        assert saved.progress.completed_steps == 2
        assert saved.progress.total_steps == 3
        assert saved.progress.time_spent == 30
        await engine.dispose()
    asyncio.run(_run())

def test_stale_save_is_a_conflict():
    async def _run():
        engine, repo = await _setup_repo()
        base = await repo.save(make_quest(status="IN_PROGRESS"))
        first = quest_state.set_step_completion(base, "step-1", True).unwrap()
        await repo.save(first)
        second = quest_state.set_step_completion(base, "step-2", True).unwrap()
        with pytest.raises(QuestConflictError) as excinfo:
            await repo.save(second)
        assert excinfo.value.expected_version == 1
        assert excinfo.value.actual_version == 2
        current = await repo.get(base.id)
        assert current.step("step-1").is_completed is True
        assert current.step("step-2").is_completed is False
        await engine.dispose()
    asyncio.run(_run())

def test_steps_are_replaced_on_save():
    async def _run():
        engine, repo = await _setup_repo()
        saved = await repo.save(make_quest(steps=3))
        saved.steps = saved.steps[:2]
        saved.steps[1].title = "Renamed"
        again = await repo.save(saved)
        assert [s.title for s in again.steps] == ["Step 1", "Renamed"]
        assert again.progress.total_steps == 2
        await engine.dispose()
    asyncio.run(_run())

def test_list_filters_and_delete():
    async def _run():
        engine, repo = await _setup_repo()
        a = make_quest("a", status="PENDING", tags=["React"])
        b = make_quest("b", status="COMPLETED", completed=3, tags=["TypeScript"])
        b.created_at = T0 + dt.timedelta(hours=1)
        c = make_quest("c", status="PENDING", tags=["TypeScript"])
        c.created_at = T0 + dt.timedelta(hours=2)
        c.difficulty = "HARD"
        for q in (a, b, c):
            await repo.save(q)
        assert [q.id for q in await repo.list()] == ["a", "b", "c"]
        assert [q.id for q in await repo.list(QuestFilter(status="PENDING"))] == ["a", "c"]
        assert [q.id for q in await repo.list(QuestFilter(tag="TypeScript"))] == ["b", "c"]
        assert [q.id for q in await repo.list(QuestFilter(difficulty="HARD"))] == ["c"]
        assert await repo.delete("b") is True
        assert await repo.delete("b") is False
        assert [q.id for q in await repo.list()] == ["a", "c"]
        await engine.dispose()
    asyncio.run(_run())
