from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Callable, Iterable

from . import quest_state
from .errors import QuestNotFoundError
from .generator import GenerationOrchestrator
from .quest_state import TransitionResult
from .quest_store import QuestRepository
from .sync import QuestEventHub
from .types import ProjectRef, Quest, QuestFilter, QuestStats

logger = logging.getLogger(__name__)


class QuestService:
    """Load, transition, save, broadcast.

    Lifecycle errors (``InvalidTransitionError``) and storage errors
    (``PersistenceError`` and subclasses) propagate to the caller; nothing is
    broadcast unless the save succeeded.
    """

    def __init__(self, repo: QuestRepository, hub: QuestEventHub | None = None):
        self.repo = repo
        self.hub = hub

    async def get_quest(self, quest_id: str) -> Quest:
        quest = await self.repo.get(quest_id)
        if quest is None:
            raise QuestNotFoundError(quest_id)
        return quest

    async def list_quests(self, quest_filter: QuestFilter | None = None) -> list[Quest]:
        return await self.repo.list(quest_filter)

    async def get_stats(self, *, today: dt.date | None = None) -> QuestStats:
        return quest_state.compute_stats(await self.repo.list(), today=today)

    async def delete_quest(self, quest_id: str) -> bool:
        return await self.repo.delete(quest_id)

    async def _commit(self, quest: Quest, action: str) -> Quest:
        saved = await self.repo.save(quest)
        logger.info("quest_transition quest_id=%s action=%s status=%s", saved.id, action, saved.status)
        if self.hub is not None:
            await self.hub.publish_quest(saved)
        return saved

    async def _transition(
        self,
        quest_id: str,
        action: str,
        apply: Callable[[Quest], TransitionResult],
    ) -> Quest:
        quest = await self.get_quest(quest_id)
        result = apply(quest)
        if not result.ok:
            logger.warning(
                "quest_transition_rejected quest_id=%s action=%s status=%s code=%s",
                quest_id,
                action,
                quest.status,
                result.error_code,
            )
        updated = result.unwrap()
        if updated == quest:
            logger.info("quest_transition_noop quest_id=%s action=%s status=%s", quest_id, action, quest.status)
            return quest
        return await self._commit(updated, action)

    async def create_quest(
        self,
        generated: dict[str, Any],
        *,
        difficulty: str,
        project: ProjectRef,
        article_url: str | None = None,
        article_title: str | None = None,
        tags: Iterable[str] = (),
    ) -> Quest:
        quest = quest_state.build_quest_from_generated(
            generated,
            difficulty=difficulty,
            project=project,
            article_url=article_url,
            article_title=article_title,
            tags=tags,
        )
        return await self._commit(quest, "create")

    async def create_from_article(
        self,
        generator: GenerationOrchestrator,
        *,
        article_url: str,
        implementation_goal: str,
        difficulty: str,
        project: ProjectRef,
        project_description: str = "",
        tags: Iterable[str] = (),
    ) -> Quest:
        generated = await generator.generate_quest(
            article_url=article_url,
            implementation_goal=implementation_goal,
            difficulty=difficulty,
            project_context={"name": project.name, "description": project_description},
        )
        return await self.create_quest(
            generated,
            difficulty=difficulty.strip().upper(),
            project=project,
            article_url=article_url,
            tags=tags,
        )

    async def start_quest(self, quest_id: str) -> Quest:
        return await self._transition(quest_id, "start", quest_state.start)

    async def pause_quest(self, quest_id: str) -> Quest:
        return await self._transition(quest_id, "pause", quest_state.pause)

    async def resume_quest(self, quest_id: str) -> Quest:
        return await self._transition(quest_id, "resume", quest_state.resume)

    async def set_step_completion(self, quest_id: str, step_id: str, completed: bool) -> Quest:
        return await self._transition(
            quest_id,
            "complete_step" if completed else "uncomplete_step",
            lambda q: quest_state.set_step_completion(q, step_id, completed),
        )

    async def add_time_spent(self, quest_id: str, step_id: str, seconds: int) -> Quest:
        return await self._transition(
            quest_id,
            "track_time",
            lambda q: quest_state.add_time_spent(q, step_id, seconds),
        )
