from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

_LEADING_FENCE_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\s*```$")


def parse_model_response(raw: str | None) -> dict | None:
    """Parse model output into a mapping, or None when it is not one.

    Only the surrounding code fence is removed; the body must be strict JSON.
    """
    if not raw:
        return None
    cleaned = _LEADING_FENCE_RE.sub("", raw.strip())
    cleaned = _TRAILING_FENCE_RE.sub("", cleaned).strip()
    try:
        parsed = json.loads(cleaned)
    except ValueError as exc:
        logger.warning("model_response_unparseable err=%s raw_len=%s", exc, len(raw))
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


@dataclass(frozen=True)
class FieldRule:
    name: str
    kind: str  # "str" | "list" | "number"
    non_empty: bool = False
    # for lists: every element must be an object passing these rules
    items: tuple[FieldRule, ...] | None = None


@dataclass(frozen=True)
class ResponseSchema:
    kind: str
    fields: tuple[FieldRule, ...]


@dataclass
class ShapeCheck:
    ok: bool
    issues: list[str] = field(default_factory=list)


QUEST_SCHEMA = ResponseSchema(
    "quest",
    (
        FieldRule("title", "str", non_empty=True),
        FieldRule("description", "str", non_empty=True),
        FieldRule(
            "steps",
            "list",
            non_empty=True,
            items=(FieldRule("title", "str"), FieldRule("description", "str")),
        ),
    ),
)
FEEDBACK_SCHEMA = ResponseSchema("feedback", (FieldRule("score", "number"),))
HINT_SCHEMA = ResponseSchema("hint", (FieldRule("hints", "list"),))
ARRANGEMENT_SCHEMA = ResponseSchema("arrangement", (FieldRule("shuffledBlocks", "list"),))

SCHEMAS: dict[str, ResponseSchema] = {
    s.kind: s for s in (QUEST_SCHEMA, FEEDBACK_SCHEMA, HINT_SCHEMA, ARRANGEMENT_SCHEMA)
}


def _check_field(value: Any, rule: FieldRule) -> str | None:
    if value is None:
        return f"{rule.name} missing"
    if rule.kind == "str":
        if not isinstance(value, str):
            return f"{rule.name} must be a string"
        if rule.non_empty and not value.strip():
            return f"{rule.name} must not be empty"
    elif rule.kind == "list":
        if not isinstance(value, list):
            return f"{rule.name} must be a list"
        if rule.non_empty and not value:
            return f"{rule.name} must not be empty"
        if rule.items is not None:
            for idx, item in enumerate(value):
                if not isinstance(item, dict):
                    return f"{rule.name}[{idx}] must be an object"
                for sub in rule.items:
                    problem = _check_field(item.get(sub.name), sub)
                    if problem:
                        return f"{rule.name}[{idx}].{problem}"
    elif rule.kind == "number":
        # bool is an int subclass but never a score
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return f"{rule.name} must be numeric"
    else:
        return f"{rule.name} has unknown rule kind {rule.kind}"
    return None


def validate(parsed: Any, schema: ResponseSchema) -> ShapeCheck:
    if not isinstance(parsed, dict):
        return ShapeCheck(False, [f"{schema.kind} payload must be an object"])
    issues: list[str] = []
    for rule in schema.fields:
        problem = _check_field(parsed.get(rule.name), rule)
        if problem:
            issues.append(problem)
    return ShapeCheck(not issues, issues)


def validate_prompt_config(config: Any) -> list[str]:
    errors: list[str] = []
    if not isinstance(config, dict):
        return ["config must be a mapping"]
    for section in ("questGeneration", "codeFeedback", "hintGeneration", "codeArrangement"):
        section_config = config.get(section)
        if not section_config:
            errors.append(f"missing section: {section}")
            continue
        if not section_config.get("system") or not section_config.get("user"):
            errors.append(f"section {section} must have 'system' and 'user' prompts")
    return errors
