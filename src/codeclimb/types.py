from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any

DIFFICULTIES = ("EASY", "MEDIUM", "HARD")
STATUSES = ("PENDING", "IN_PROGRESS", "COMPLETED", "PAUSED")
STEP_TYPES = ("ARRANGE_CODE", "IMPLEMENT_CODE", "VERIFY_OUTPUT", "REVIEW_CODE")
GENERATED_STEP_TYPES = ("ARRANGE_CODE", "IMPLEMENT_CODE", "VERIFY_OUTPUT")
SOURCE_TYPES = ("ARTICLE", "MANUAL", "TUTORIAL")


def _iso(value: dt.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> dt.datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, dt.datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return dt.datetime.fromisoformat(text)


@dataclass
class QuestStepRecord:
    id: str
    step_number: int
    title: str
    description: str
    type: str = "IMPLEMENT_CODE"
    is_completed: bool = False
    completed_at: dt.datetime | None = None
    time_spent: int = 0  # seconds
    hints: list[str] = field(default_factory=list)
    code_snippet: str | None = None
    expected_output: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "stepNumber": self.step_number,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "isCompleted": self.is_completed,
            "completedAt": _iso(self.completed_at),
            "timeSpent": self.time_spent,
            "hints": list(self.hints),
            "codeSnippet": self.code_snippet,
            "expectedOutput": self.expected_output,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuestStepRecord:
        return cls(
            id=str(data["id"]),
            step_number=int(data.get("stepNumber") or 0),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            type=str(data.get("type") or "IMPLEMENT_CODE"),
            is_completed=bool(data.get("isCompleted")),
            completed_at=_parse_dt(data.get("completedAt")),
            time_spent=int(data.get("timeSpent") or 0),
            hints=[str(h) for h in (data.get("hints") or [])],
            code_snippet=data.get("codeSnippet"),
            expected_output=data.get("expectedOutput"),
        )


@dataclass
class QuestProgress:
    completed_steps: int = 0
    total_steps: int = 0
    time_spent: int = 0  # seconds
    started_at: dt.datetime | None = None
    completed_at: dt.datetime | None = None
    last_activity_at: dt.datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "completedSteps": self.completed_steps,
            "totalSteps": self.total_steps,
            "timeSpent": self.time_spent,
            "startedAt": _iso(self.started_at),
            "completedAt": _iso(self.completed_at),
            "lastActivityAt": _iso(self.last_activity_at),
        }


@dataclass
class ProjectRef:
    id: str
    name: str = ""
    path: str = ""


@dataclass
class QuestSource:
    type: str = "ARTICLE"
    url: str | None = None
    title: str | None = None
    article_id: str | None = None


@dataclass
class QuestRewards:
    xp: int = 0
    badges: list[str] = field(default_factory=list)


@dataclass
class Quest:
    id: str
    title: str
    description: str
    difficulty: str
    project: ProjectRef
    status: str = "PENDING"
    tags: list[str] = field(default_factory=list)
    estimated_duration: int = 0  # minutes
    progress: QuestProgress = field(default_factory=QuestProgress)
    steps: list[QuestStepRecord] = field(default_factory=list)
    source: QuestSource = field(default_factory=QuestSource)
    rewards: QuestRewards = field(default_factory=QuestRewards)
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
    # optimistic concurrency token, bumped by the repository on every save
    version: int = 0

    def step(self, step_id: str) -> QuestStepRecord | None:
        for s in self.steps:
            if s.id == step_id:
                return s
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "difficulty": self.difficulty,
            "status": self.status,
            "tags": list(self.tags),
            "estimatedDuration": self.estimated_duration,
            "progress": self.progress.to_dict(),
            "project": {"id": self.project.id, "name": self.project.name, "path": self.project.path},
            "steps": [s.to_dict() for s in self.steps],
            "source": {
                "type": self.source.type,
                "url": self.source.url,
                "title": self.source.title,
                "articleId": self.source.article_id,
            },
            "rewards": {"xp": self.rewards.xp, "badges": list(self.rewards.badges)},
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Quest:
        progress = data.get("progress") or {}
        project = data.get("project") or {}
        source = data.get("source") or {}
        rewards = data.get("rewards") or {}
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            difficulty=str(data.get("difficulty") or "MEDIUM"),
            status=str(data.get("status") or "PENDING"),
            tags=[str(t) for t in (data.get("tags") or [])],
            estimated_duration=int(data.get("estimatedDuration") or 0),
            progress=QuestProgress(
                completed_steps=int(progress.get("completedSteps") or 0),
                total_steps=int(progress.get("totalSteps") or 0),
                time_spent=int(progress.get("timeSpent") or 0),
                started_at=_parse_dt(progress.get("startedAt")),
                completed_at=_parse_dt(progress.get("completedAt")),
                last_activity_at=_parse_dt(progress.get("lastActivityAt")),
            ),
            project=ProjectRef(
                id=str(project.get("id") or ""),
                name=str(project.get("name") or ""),
                path=str(project.get("path") or ""),
            ),
            steps=[QuestStepRecord.from_dict(s) for s in (data.get("steps") or [])],
            source=QuestSource(
                type=str(source.get("type") or "ARTICLE"),
                url=source.get("url"),
                title=source.get("title"),
                article_id=source.get("articleId"),
            ),
            rewards=QuestRewards(
                xp=int(rewards.get("xp") or 0),
                badges=[str(b) for b in (rewards.get("badges") or [])],
            ),
            created_at=_parse_dt(data.get("createdAt")),
            updated_at=_parse_dt(data.get("updatedAt")),
            version=int(data.get("version") or 0),
        )


@dataclass(frozen=True)
class QuestFilter:
    status: str | None = None
    difficulty: str | None = None
    project_id: str | None = None
    tag: str | None = None
    source: str | None = None

    def matches(self, quest: Quest) -> bool:
        if self.status and quest.status != self.status:
            return False
        if self.difficulty and quest.difficulty != self.difficulty:
            return False
        if self.project_id and quest.project.id != self.project_id:
            return False
        if self.tag and self.tag not in quest.tags:
            return False
        if self.source and quest.source.type != self.source:
            return False
        return True


@dataclass
class QuestStats:
    total: int
    completed: int
    in_progress: int
    pending: int
    paused: int
    total_time_spent: int  # seconds
    average_completion_time: float  # seconds
    completion_rate: float  # percent
    streak: int  # consecutive days with quest activity
    favorite_category: str | None
    recent_completions: list[Quest] = field(default_factory=list)
