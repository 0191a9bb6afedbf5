from __future__ import annotations

INVALID_TRANSITION = "INVALID_TRANSITION"
STEP_NOT_FOUND = "STEP_NOT_FOUND"


class CodeClimbError(Exception):
    pass


class ValidationError(CodeClimbError):
    """Caller-supplied generation input is missing or malformed."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"{field} is required")


class ModelError(CodeClimbError):
    """The model call failed: no credential, transport error, bad status or empty content."""


class ShapeError(CodeClimbError):
    """The model answered but the payload does not match the expected shape."""

    def __init__(self, kind: str, issues: list[str]) -> None:
        self.kind = kind
        self.issues = list(issues)
        super().__init__(f"{kind}: {'; '.join(issues) or 'invalid payload'}")


class InvalidTransitionError(CodeClimbError):
    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(message)


class PersistenceError(CodeClimbError):
    pass


class QuestNotFoundError(PersistenceError):
    def __init__(self, quest_id: str) -> None:
        self.quest_id = quest_id
        super().__init__(f"quest {quest_id} not found")


class QuestConflictError(PersistenceError):
    """A save was based on a stale version of the quest."""

    def __init__(self, quest_id: str, expected_version: int, actual_version: int) -> None:
        self.quest_id = quest_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"quest {quest_id} changed concurrently (expected version {expected_version}, found {actual_version})"
        )
