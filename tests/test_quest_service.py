import asyncio
import datetime as dt
import json

import pytest

sqlalchemy = pytest.importorskip("sqlalchemy")
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from codeclimb.db import Base
from codeclimb.errors import InvalidTransitionError, PersistenceError, QuestNotFoundError
from codeclimb.generator import GenerationOrchestrator
from codeclimb.quest_service import QuestService
from codeclimb.quest_store import SqlQuestRepository
from codeclimb.sync import QUEST_UPDATED, QuestEventHub
from codeclimb.types import ProjectRef

class RecordingSink:
    def __init__(self):
        self.events: list[dict] = []

    async def __call__(self, payload: dict) -> None:
        self.events.append(payload)

class BrokenModel:
    def invoke(self, system_prompt, user_prompt, *, temperature, max_output_tokens):
        raise ConnectionError("network down")

class FailingRepo:
    async def get(self, quest_id):
        raise PersistenceError("store unavailable")

    async def save(self, quest):
        raise PersistenceError("store unavailable")

    async def list(self, quest_filter=None):
        raise PersistenceError("store unavailable")

    async def delete(self, quest_id):
        raise PersistenceError("store unavailable")

async def _setup_service():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    from codeclimb import models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    Session = async_sessionmaker(engine, expire_on_commit=False)
    hub = QuestEventHub()
    sink = RecordingSink()
    hub.subscribe(QUEST_UPDATED, sink)
    return engine, QuestService(SqlQuestRepository(Session), hub), sink

async def _create(service: QuestService):
    return await service.create_from_article(
        GenerationOrchestrator(BrokenModel(), timeout_sec=1.0),
        article_url="https://example.com/a",
        implementation_goal="build a counter",
        difficulty="easy",
        project=ProjectRef(id="p1", name="demo"),
        project_description="demo app",
        tags=["React"],
    )

def test_full_lifecycle_with_fallback_quest():
    async def _run():
        engine, service, sink = await _setup_service()
        quest = await _create(service)
        assert quest.status == "PENDING"
        assert "build a counter" in quest.title
        assert quest.progress.total_steps == 3
        assert quest.difficulty == "EASY"
        assert quest.rewards.xp == 100

        quest = await service.start_quest(quest.id)
        assert quest.status == "IN_PROGRESS"
        for step in quest.steps:
            quest = await service.set_step_completion(quest.id, step.id, True)
        assert quest.status == "COMPLETED"
        assert quest.progress.completed_at is not None

        stored = await service.get_quest(quest.id)
        assert stored.status == "COMPLETED"
        assert stored.progress.completed_steps == 3

        # create, start, three step completions
        assert len(sink.events) == 5
        assert sink.events[-1]["status"] == "COMPLETED"
        assert sink.events[-1]["progress"]["completedSteps"] == 3

        stats = await service.get_stats()
        assert stats.total == 1
        assert stats.completion_rate == 100
        await engine.dispose()
    asyncio.run(_run())

def test_invalid_transition_is_surfaced_and_not_broadcast():
    async def _run():
        engine, service, sink = await _setup_service()
        quest = await _create(service)
        with pytest.raises(InvalidTransitionError) as excinfo:
            await service.pause_quest(quest.id)
        assert excinfo.value.code == "INVALID_TRANSITION"
        assert len(sink.events) == 1
        stored = await service.get_quest(quest.id)
        assert stored.status == "PENDING"
        await engine.dispose()
    asyncio.run(_run())

def test_paused_quest_rejects_step_completion():
    async def _run():
        engine, service, _sink = await _setup_service()
        quest = await _create(service)
        await service.start_quest(quest.id)
        await service.pause_quest(quest.id)
        with pytest.raises(InvalidTransitionError):
            await service.set_step_completion(quest.id, "step-1", True)
        resumed = await service.resume_quest(quest.id)
        assert resumed.status == "IN_PROGRESS"
        await engine.dispose()
    asyncio.run(_run())

def test_missing_quest():
    async def _run():
        engine, service, _sink = await _setup_service()
        with pytest.raises(QuestNotFoundError):
            await service.start_quest("nope")
        await engine.dispose()
    asyncio.run(_run())

def test_persistence_errors_propagate():
    async def _run():
        hub = QuestEventHub()
        sink = RecordingSink()
        hub.subscribe(QUEST_UPDATED, sink)
        service = QuestService(FailingRepo(), hub)
        with pytest.raises(PersistenceError):
            await service.start_quest("q1")
        with pytest.raises(PersistenceError):
            await service.get_stats()
        assert sink.events == []
    asyncio.run(_run())

def test_time_tracking_through_service():
    async def _run():
        engine, service, _sink = await _setup_service()
        quest = await _create(service)
        await service.start_quest(quest.id)
        quest = await service.add_time_spent(quest.id, "step-1", 90)
        quest = await service.add_time_spent(quest.id, "step-2", 30)
        assert quest.progress.time_spent == 120
        stats = await service.get_stats(today=dt.date.today())
        assert stats.total_time_spent == 120
        await engine.dispose()
    asyncio.run(_run())

class StringStepsModel:
    def invoke(self, system_prompt, user_prompt, *, temperature, max_output_tokens):
        return json.dumps({"title": "T", "description": "D", "steps": ["just do it"]})

def test_quest_with_string_steps_is_stored_from_fallback():
    async def _run():
        engine, service, _sink = await _setup_service()
        quest = await service.create_from_article(
            GenerationOrchestrator(StringStepsModel(), timeout_sec=1.0),
            article_url="https://example.com/a",
            implementation_goal="build a counter",
            difficulty="MEDIUM",
            project=ProjectRef(id="p1"),
        )
        stored = await service.get_quest(quest.id)
        assert stored.title == "Implement build a counter"
        assert stored.progress.total_steps == 3
        assert len(stored.steps) == 3
        await engine.dispose()
    asyncio.run(_run())

def test_recompleting_step_on_completed_quest_is_not_saved():
    async def _run():
        engine, service, sink = await _setup_service()
        quest = await _create(service)
        quest = await service.start_quest(quest.id)
        for step in quest.steps:
            quest = await service.set_step_completion(quest.id, step.id, True)
        assert quest.status == "COMPLETED"
        events = len(sink.events)

        again = await service.set_step_completion(quest.id, "step-1", True)
        assert again.status == "COMPLETED"
        assert again.version == quest.version
        assert len(sink.events) == events
        stored = await service.get_quest(quest.id)
        assert stored.version == quest.version
        await engine.dispose()
    asyncio.run(_run())
