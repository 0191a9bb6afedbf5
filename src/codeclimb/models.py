from __future__ import annotations
import datetime as dt
from sqlalchemy import (
    String, Integer, DateTime, Boolean, Text, ForeignKey, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from .db import Base

UTC = dt.timezone.utc
def utcnow() -> dt.datetime:
    return dt.datetime.now(tz=UTC)

class QuestRow(Base):
    __tablename__ = "quests"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(Text)
    description: Mapped[str] = mapped_column(Text, default="")
    difficulty: Mapped[str] = mapped_column(String(16))  # EASY | MEDIUM | HARD
    status: Mapped[str] = mapped_column(String(16), default="PENDING", index=True)
    tags_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON list
    estimated_duration: Mapped[int] = mapped_column(Integer, default=0)  # minutes

    # progress; completed/total are always derived from the step rows before saving
    completed_steps: Mapped[int] = mapped_column(Integer, default=0)
    total_steps: Mapped[int] = mapped_column(Integer, default=0)
    time_spent: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    started_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_activity_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    project_id: Mapped[str] = mapped_column(String(64), index=True)
    project_name: Mapped[str] = mapped_column(String(255), default="")
    project_path: Mapped[str] = mapped_column(Text, default="")

    source_type: Mapped[str] = mapped_column(String(16), default="ARTICLE")  # ARTICLE | MANUAL | TUTORIAL
    source_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    source_article_id: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reward_xp: Mapped[int] = mapped_column(Integer, default=0)
    reward_badges_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON list

    version: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    steps: Mapped[list[QuestStepRow]] = relationship(
        "QuestStepRow",
        back_populates="quest",
        cascade="all, delete-orphan",
        order_by="QuestStepRow.step_number",
        lazy="selectin",
    )

class QuestStepRow(Base):
    __tablename__ = "quest_steps"
    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quest_id: Mapped[str] = mapped_column(String(64), ForeignKey("quests.id", ondelete="CASCADE"), index=True)
    step_id: Mapped[str] = mapped_column(String(64))  # unique within a quest
    step_number: Mapped[int] = mapped_column(Integer)  # 1..N
    title: Mapped[str] = mapped_column(Text)
    description: Mapped[str] = mapped_column(Text, default="")
    step_type: Mapped[str] = mapped_column(String(32))  # ARRANGE_CODE | IMPLEMENT_CODE | VERIFY_OUTPUT | REVIEW_CODE
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    completed_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    time_spent: Mapped[int] = mapped_column(Integer, default=0)  # seconds
    hints_json: Mapped[str] = mapped_column(Text, default="[]")  # JSON list
    code_snippet: Mapped[str | None] = mapped_column(Text, nullable=True)
    expected_output: Mapped[str | None] = mapped_column(Text, nullable=True)

    quest: Mapped[QuestRow] = relationship("QuestRow", back_populates="steps")

    __table_args__ = (
        UniqueConstraint("quest_id", "step_id", name="uq_quest_step"),
        Index("ix_quest_steps_order", "quest_id", "step_number"),
    )
