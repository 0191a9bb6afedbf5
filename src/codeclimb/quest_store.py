from __future__ import annotations

import datetime as dt
import json
import logging
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .errors import PersistenceError, QuestConflictError
from .models import QuestRow, QuestStepRow, UTC, utcnow
from .types import (
    ProjectRef,
    Quest,
    QuestFilter,
    QuestProgress,
    QuestRewards,
    QuestSource,
    QuestStepRecord,
)

logger = logging.getLogger(__name__)


class QuestRepository(Protocol):
    async def get(self, quest_id: str) -> Quest | None: ...

    async def save(self, quest: Quest) -> Quest: ...

    async def list(self, quest_filter: QuestFilter | None = None) -> list[Quest]: ...

    async def delete(self, quest_id: str) -> bool: ...


def _aware(value: dt.datetime | None) -> dt.datetime | None:
    # sqlite hands back naive datetimes even for timezone-aware columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _parse_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        val = json.loads(raw)
    except ValueError:
        return []
    if isinstance(val, list):
        return [str(x) for x in val]
    return []


def _dump_list(values: list[str]) -> str:
    return json.dumps(list(values), ensure_ascii=False)


def _to_domain(row: QuestRow) -> Quest:
    steps = [
        QuestStepRecord(
            id=s.step_id,
            step_number=s.step_number,
            title=s.title,
            description=s.description,
            type=s.step_type,
            is_completed=bool(s.is_completed),
            completed_at=_aware(s.completed_at),
            time_spent=s.time_spent or 0,
            hints=_parse_list(s.hints_json),
            code_snippet=s.code_snippet,
            expected_output=s.expected_output,
        )
        for s in sorted(row.steps, key=lambda s: s.step_number)
    ]
    return Quest(
        id=row.id,
        title=row.title,
        description=row.description,
        difficulty=row.difficulty,
        status=row.status,
        tags=_parse_list(row.tags_json),
        estimated_duration=row.estimated_duration or 0,
        progress=QuestProgress(
            completed_steps=row.completed_steps,
            total_steps=row.total_steps,
            time_spent=row.time_spent,
            started_at=_aware(row.started_at),
            completed_at=_aware(row.completed_at),
            last_activity_at=_aware(row.last_activity_at),
        ),
        project=ProjectRef(id=row.project_id, name=row.project_name, path=row.project_path),
        steps=steps,
        source=QuestSource(
            type=row.source_type,
            url=row.source_url,
            title=row.source_title,
            article_id=row.source_article_id,
        ),
        rewards=QuestRewards(xp=row.reward_xp, badges=_parse_list(row.reward_badges_json)),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        version=row.version,
    )


def _apply(row: QuestRow, quest: Quest) -> None:
    row.title = quest.title
    row.description = quest.description
    row.difficulty = quest.difficulty
    row.status = quest.status
    row.tags_json = _dump_list(quest.tags)
    row.estimated_duration = quest.estimated_duration
    # derived counters are written from the steps, never from the cached progress
    row.completed_steps = sum(1 for s in quest.steps if s.is_completed)
    row.total_steps = len(quest.steps)
    row.time_spent = sum(s.time_spent for s in quest.steps)
    row.started_at = quest.progress.started_at
    row.completed_at = quest.progress.completed_at
    row.last_activity_at = quest.progress.last_activity_at
    row.project_id = quest.project.id
    row.project_name = quest.project.name
    row.project_path = quest.project.path
    row.source_type = quest.source.type
    row.source_url = quest.source.url
    row.source_title = quest.source.title
    row.source_article_id = quest.source.article_id
    row.reward_xp = quest.rewards.xp
    row.reward_badges_json = _dump_list(quest.rewards.badges)
    row.created_at = quest.created_at or row.created_at or utcnow()
    row.updated_at = quest.updated_at or utcnow()

    existing = {s.step_id: s for s in row.steps}
    new_steps: list[QuestStepRow] = []
    for step in quest.steps:
        srow = existing.get(step.id) or QuestStepRow(step_id=step.id)
        srow.step_number = step.step_number
        srow.title = step.title
        srow.description = step.description
        srow.step_type = step.type
        srow.is_completed = step.is_completed
        srow.completed_at = step.completed_at
        srow.time_spent = step.time_spent
        srow.hints_json = _dump_list(step.hints)
        srow.code_snippet = step.code_snippet
        srow.expected_output = step.expected_output
        new_steps.append(srow)
    row.steps = new_steps


class SqlQuestRepository:
    """Quest storage on the async SQLAlchemy session factory.

    ``save`` writes the quest row and all its step rows in one transaction and
    checks the ``version`` column, so a write based on a stale copy fails with
    ``QuestConflictError`` instead of overwriting the newer state.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def get(self, quest_id: str) -> Quest | None:
        try:
            async with self._sessionmaker() as s:
                row = await s.get(QuestRow, quest_id)
                return _to_domain(row) if row else None
        except SQLAlchemyError as exc:
            logger.exception("quest_get_failed quest_id=%s", quest_id)
            raise PersistenceError(f"failed to load quest {quest_id}") from exc

    async def save(self, quest: Quest) -> Quest:
        try:
            async with self._sessionmaker() as s:
                async with s.begin():
                    row = await s.get(QuestRow, quest.id)
                    if row is None:
                        row = QuestRow(id=quest.id, version=0)
                        row.steps = []
                        s.add(row)
                    elif row.version != quest.version:
                        raise QuestConflictError(quest.id, quest.version, row.version)
                    _apply(row, quest)
                    row.version = quest.version + 1
                    await s.flush()
                    saved = _to_domain(row)
        except SQLAlchemyError as exc:
            logger.exception("quest_save_failed quest_id=%s", quest.id)
            raise PersistenceError(f"failed to save quest {quest.id}") from exc
        logger.info(
            "quest_saved quest_id=%s status=%s completed=%s/%s version=%s",
            saved.id,
            saved.status,
            saved.progress.completed_steps,
            saved.progress.total_steps,
            saved.version,
        )
        return saved

    async def list(self, quest_filter: QuestFilter | None = None) -> list[Quest]:
        quest_filter = quest_filter or QuestFilter()
        stmt = select(QuestRow).order_by(QuestRow.created_at, QuestRow.id)
        if quest_filter.status:
            stmt = stmt.where(QuestRow.status == quest_filter.status)
        if quest_filter.difficulty:
            stmt = stmt.where(QuestRow.difficulty == quest_filter.difficulty)
        if quest_filter.project_id:
            stmt = stmt.where(QuestRow.project_id == quest_filter.project_id)
        if quest_filter.source:
            stmt = stmt.where(QuestRow.source_type == quest_filter.source)
        try:
            async with self._sessionmaker() as s:
                rows = (await s.execute(stmt)).scalars().all()
                quests = [_to_domain(r) for r in rows]
        except SQLAlchemyError as exc:
            logger.exception("quest_list_failed")
            raise PersistenceError("failed to list quests") from exc
        # tags live in a JSON column
        return [q for q in quests if quest_filter.matches(q)]

    async def delete(self, quest_id: str) -> bool:
        try:
            async with self._sessionmaker() as s:
                async with s.begin():
                    await s.execute(delete(QuestStepRow).where(QuestStepRow.quest_id == quest_id))
                    result = await s.execute(delete(QuestRow).where(QuestRow.id == quest_id))
        except SQLAlchemyError as exc:
            logger.exception("quest_delete_failed quest_id=%s", quest_id)
            raise PersistenceError(f"failed to delete quest {quest_id}") from exc
        return bool(result.rowcount)
