"""Quest lifecycle: status transitions, step bookkeeping and derived statistics.

Every transition takes a quest and returns a ``TransitionResult`` holding a new
quest; the input is never mutated, so a caller holding a cached copy can
discard a rejected or unsaved change without rolling anything back.

    PENDING --start--> IN_PROGRESS --pause--> PAUSED --resume--> IN_PROGRESS
    IN_PROGRESS --(last step completed)--> COMPLETED
"""
from __future__ import annotations

import copy
import datetime as dt
import uuid
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable

from .errors import INVALID_TRANSITION, STEP_NOT_FOUND, InvalidTransitionError, ValidationError
from .models import utcnow
from .types import (
    GENERATED_STEP_TYPES,
    ProjectRef,
    Quest,
    QuestProgress,
    QuestRewards,
    QuestSource,
    QuestStats,
    QuestStepRecord,
)

XP_BY_DIFFICULTY = {"EASY": 100, "MEDIUM": 150, "HARD": 200}
RECENT_COMPLETIONS = 5


@dataclass
class TransitionResult:
    ok: bool
    quest: Quest
    error_code: str | None = None
    message: str = ""

    def unwrap(self) -> Quest:
        if not self.ok:
            raise InvalidTransitionError(self.error_code or INVALID_TRANSITION, self.message)
        return self.quest


def _ok(quest: Quest) -> TransitionResult:
    return TransitionResult(True, quest)


def _rejected(quest: Quest, action: str) -> TransitionResult:
    return TransitionResult(
        False,
        quest,
        INVALID_TRANSITION,
        f"cannot {action} quest {quest.id} in status {quest.status}",
    )


def recompute_progress(quest: Quest) -> None:
    quest.progress.total_steps = len(quest.steps)
    quest.progress.completed_steps = sum(1 for s in quest.steps if s.is_completed)
    quest.progress.time_spent = sum(s.time_spent for s in quest.steps)


def start(quest: Quest, *, now: dt.datetime | None = None) -> TransitionResult:
    if quest.status != "PENDING":
        return _rejected(quest, "start")
    now = now or utcnow()
    q = copy.deepcopy(quest)
    q.status = "IN_PROGRESS"
    q.progress.started_at = now
    q.progress.last_activity_at = now
    q.updated_at = now
    return _ok(q)


def pause(quest: Quest, *, now: dt.datetime | None = None) -> TransitionResult:
    if quest.status != "IN_PROGRESS":
        return _rejected(quest, "pause")
    now = now or utcnow()
    q = copy.deepcopy(quest)
    q.status = "PAUSED"
    q.updated_at = now
    return _ok(q)


def resume(quest: Quest, *, now: dt.datetime | None = None) -> TransitionResult:
    if quest.status != "PAUSED":
        return _rejected(quest, "resume")
    now = now or utcnow()
    q = copy.deepcopy(quest)
    q.status = "IN_PROGRESS"
    q.progress.last_activity_at = now
    q.updated_at = now
    return _ok(q)


def set_step_completion(
    quest: Quest,
    step_id: str,
    completed: bool,
    *,
    now: dt.datetime | None = None,
) -> TransitionResult:
    """Mark one step complete or incomplete and re-derive the quest progress.

    Allowed while IN_PROGRESS. On a COMPLETED quest, re-completing a step is
    accepted as a no-op and un-completing one is rejected. PENDING and PAUSED
    quests reject step changes.
    """
    step = quest.step(step_id)
    if step is None:
        return TransitionResult(False, quest, STEP_NOT_FOUND, f"step {step_id} not found in quest {quest.id}")
    if quest.status == "COMPLETED":
        if completed:
            return _ok(copy.deepcopy(quest))
        return _rejected(quest, "reopen a step of")
    if quest.status != "IN_PROGRESS":
        return _rejected(quest, "change steps of")

    now = now or utcnow()
    q = copy.deepcopy(quest)
    step = q.step(step_id)
    step.is_completed = completed
    if completed and step.completed_at is None:
        step.completed_at = now
    recompute_progress(q)
    q.progress.last_activity_at = now
    if q.progress.total_steps and q.progress.completed_steps == q.progress.total_steps:
        q.status = "COMPLETED"
        q.progress.completed_at = now
    q.updated_at = now
    return _ok(q)


def add_time_spent(
    quest: Quest,
    step_id: str,
    seconds: int,
    *,
    now: dt.datetime | None = None,
) -> TransitionResult:
    if seconds < 0:
        raise ValidationError("seconds", "seconds must be non-negative")
    step = quest.step(step_id)
    if step is None:
        return TransitionResult(False, quest, STEP_NOT_FOUND, f"step {step_id} not found in quest {quest.id}")
    if quest.status != "IN_PROGRESS":
        return _rejected(quest, "track time on")
    now = now or utcnow()
    q = copy.deepcopy(quest)
    q.step(step_id).time_spent += int(seconds)
    recompute_progress(q)
    q.progress.last_activity_at = now
    q.updated_at = now
    return _ok(q)


def build_quest_from_generated(
    generated: dict[str, Any],
    *,
    difficulty: str,
    project: ProjectRef,
    article_url: str | None = None,
    article_title: str | None = None,
    tags: Iterable[str] = (),
    quest_id: str | None = None,
    now: dt.datetime | None = None,
) -> Quest:
    now = now or utcnow()
    steps: list[QuestStepRecord] = []
    for idx, raw in enumerate(generated.get("steps") or [], start=1):
        if not isinstance(raw, dict):
            continue
        step_type = raw.get("type")
        if step_type not in GENERATED_STEP_TYPES:
            step_type = "IMPLEMENT_CODE"
        hints = raw.get("hints")
        steps.append(
            QuestStepRecord(
                id=f"step-{idx}",
                step_number=idx,
                title=str(raw.get("title") or f"Step {idx}"),
                description=str(raw.get("description") or ""),
                type=step_type,
                hints=[str(h) for h in hints][:5] if isinstance(hints, list) else [],
                code_snippet=raw.get("expectedCode") or None,
            )
        )
    if not steps:
        raise ValidationError("steps", "generated quest has no usable steps")

    all_tags = list(dict.fromkeys(str(t) for t in tags if t))
    tech_stack = generated.get("techStack")
    if isinstance(tech_stack, list):
        for t in tech_stack[:10]:
            if t and str(t) not in all_tags:
                all_tags.append(str(t))

    estimated = generated.get("estimatedTime")
    if isinstance(estimated, bool) or not isinstance(estimated, (int, float)):
        estimated = 120
    estimated = max(30, min(480, int(estimated)))

    quest = Quest(
        id=quest_id or uuid.uuid4().hex,
        title=str(generated.get("title") or ""),
        description=str(generated.get("description") or ""),
        difficulty=difficulty,
        project=project,
        status="PENDING",
        tags=all_tags,
        estimated_duration=estimated,
        progress=QuestProgress(),
        steps=steps,
        source=QuestSource(type="ARTICLE" if article_url else "MANUAL", url=article_url, title=article_title),
        rewards=QuestRewards(xp=XP_BY_DIFFICULTY.get(difficulty, 0)),
        created_at=now,
        updated_at=now,
    )
    recompute_progress(quest)
    return quest


def _activity_dates(quest: Quest) -> set[dt.date]:
    stamps = [quest.progress.started_at, quest.progress.last_activity_at, quest.progress.completed_at]
    stamps.extend(s.completed_at for s in quest.steps)
    return {s.date() for s in stamps if s is not None}


def activity_streak(quests: Iterable[Quest], today: dt.date) -> int:
    days: set[dt.date] = set()
    for q in quests:
        days |= _activity_dates(q)
    # a streak stays alive until a whole day passes without activity
    cursor = today if today in days else today - dt.timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= dt.timedelta(days=1)
    return streak


def compute_stats(quests: Iterable[Quest], *, today: dt.date | None = None) -> QuestStats:
    all_quests = list(quests)
    today = today or utcnow().date()
    by_status = Counter(q.status for q in all_quests)
    completed = [q for q in all_quests if q.status == "COMPLETED"]
    total = len(all_quests)

    total_time = sum(q.progress.time_spent for q in all_quests)
    average = sum(q.progress.time_spent for q in completed) / len(completed) if completed else 0
    rate = (len(completed) / total) * 100 if total else 0

    tag_counts = Counter(t for q in all_quests for t in q.tags)
    favorite = tag_counts.most_common(1)[0][0] if tag_counts else None

    floor = dt.datetime.min.replace(tzinfo=dt.timezone.utc)
    recent = sorted(
        completed,
        key=lambda q: q.progress.completed_at or floor,
        reverse=True,
    )[:RECENT_COMPLETIONS]

    return QuestStats(
        total=total,
        completed=by_status["COMPLETED"],
        in_progress=by_status["IN_PROGRESS"],
        pending=by_status["PENDING"],
        paused=by_status["PAUSED"],
        total_time_spent=total_time,
        average_completion_time=average,
        completion_rate=rate,
        streak=activity_streak(all_quests, today),
        favorite_category=favorite,
        recent_completions=recent,
    )
