import datetime as dt

from codeclimb.types import ProjectRef, Quest, QuestProgress, QuestStepRecord

UTC = dt.timezone.utc
T0 = dt.datetime(2024, 1, 15, 10, 0, tzinfo=UTC)


def make_quest(
    quest_id: str = "q1",
    *,
    status: str = "PENDING",
    steps: int = 3,
    completed: int = 0,
    tags: list[str] | None = None,
) -> Quest:
    records = [
        QuestStepRecord(
            id=f"step-{i}",
            step_number=i,
            title=f"Step {i}",
            description="do it",
            type="IMPLEMENT_CODE",
            is_completed=i <= completed,
            completed_at=T0 if i <= completed else None,
            hints=["hint"],
        )
        for i in range(1, steps + 1)
    ]
    return Quest(
        id=quest_id,
        title="React hooks",
        description="useState counter",
        difficulty="EASY",
        project=ProjectRef(id="proj1", name="counter", path="/tmp/counter"),
        status=status,
        tags=tags if tags is not None else ["React"],
        progress=QuestProgress(completed_steps=completed, total_steps=steps),
        steps=records,
        created_at=T0,
        updated_at=T0,
    )
