from __future__ import annotations

import asyncio
import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any

from .errors import ModelError, ShapeError, ValidationError
from .llm import ModelInvoker
from .normalize import non_blank_lines
from .prompts import (
    FALLBACK_ARRANGEMENT_HINTS,
    FALLBACK_FEEDBACK,
    FALLBACK_HINTS,
    PARAMS,
    PROMPTS,
    SECTION_BY_KIND,
)
from .templating import interpolate, interpolate_payload
from .types import DIFFICULTIES
from .validation import SCHEMAS, parse_model_response, validate

logger = logging.getLogger(__name__)


def _required(value: Any, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(name)
    return str(value)


def _difficulty(value: Any) -> str:
    difficulty = str(value or "").strip().upper()
    if difficulty not in DIFFICULTIES:
        raise ValidationError("difficulty", f"difficulty must be one of {', '.join(DIFFICULTIES)}")
    return difficulty


def fallback_quest(variables: dict[str, str], prompts: dict[str, Any] = PROMPTS) -> dict:
    return interpolate_payload(prompts["questGeneration"]["fallbackResponse"], variables)


def fallback_feedback() -> dict:
    return copy.deepcopy(FALLBACK_FEEDBACK)


def fallback_hints() -> dict:
    return {"hints": list(FALLBACK_HINTS)}


def fallback_arrangement(original_code: str, learning_goal: str = "") -> dict:
    lines = non_blank_lines(original_code)
    blocks = [
        {"id": f"block-{idx}", "code": line, "correctOrder": idx}
        for idx, line in enumerate(lines, start=1)
    ]
    description = "Put the code blocks in the order the program runs them."
    if learning_goal:
        description = f"{description} Goal: {learning_goal}"
    return {
        "title": "Arrange the code",
        "description": description,
        "shuffledBlocks": blocks,
        "hints": list(FALLBACK_ARRANGEMENT_HINTS),
    }


@dataclass
class GenerationOrchestrator:
    """Prompt building, model call, response checking and fallback for every generation kind.

    Public methods never raise for model-side problems: transport errors,
    timeouts, empty or malformed output all turn into the kind's fallback.
    Only bad caller input raises ``ValidationError``, before any model call.
    """

    llm: ModelInvoker | None
    timeout_sec: float = 10.0
    prompts: dict[str, Any] = field(default_factory=lambda: PROMPTS)

    async def _call_model(self, kind: str, variables: dict[str, str]) -> str:
        if self.llm is None:
            raise ModelError("no model client configured")
        section = self.prompts[SECTION_BY_KIND[kind]]
        system_prompt = interpolate(section["system"], variables)
        user_prompt = interpolate(section["user"], variables)
        params = PARAMS[kind]
        raw = await asyncio.wait_for(
            asyncio.to_thread(
                self.llm.invoke,
                system_prompt,
                user_prompt,
                temperature=params.temperature,
                max_output_tokens=params.max_output_tokens,
            ),
            timeout=self.timeout_sec,
        )
        if not raw or not raw.strip():
            raise ModelError("model returned empty content")
        return raw

    async def _generate(self, kind: str, variables: dict[str, str]) -> dict | None:
        started = time.perf_counter()
        try:
            raw = await self._call_model(kind, variables)
            parsed = parse_model_response(raw)
            if parsed is None:
                raise ShapeError(kind, ["response is not a JSON object"])
            check = validate(parsed, SCHEMAS[kind])
            if not check.ok:
                raise ShapeError(kind, check.issues)
        except asyncio.TimeoutError:
            self._log(kind, "fallback", "timeout", started)
            return None
        except (ModelError, ShapeError) as exc:
            self._log(kind, "fallback", f"{type(exc).__name__}: {exc}", started)
            return None
        except Exception as exc:
            logger.exception("generation_unexpected_error kind=%s", kind)
            self._log(kind, "fallback", f"{type(exc).__name__}: {exc}", started)
            return None
        self._log(kind, "success", "", started)
        return parsed

    def _log(self, kind: str, path: str, reason: str, started: float) -> None:
        latency_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "generation_result kind=%s path=%s reason=%s latency_ms=%s",
            kind,
            path,
            reason or "-",
            latency_ms,
        )

    async def generate_quest(
        self,
        *,
        article_url: str,
        implementation_goal: str,
        difficulty: str,
        project_context: dict[str, Any] | None = None,
    ) -> dict:
        project_context = project_context or {}
        variables = {
            "articleUrl": _required(article_url, "articleUrl"),
            "implementationGoal": _required(implementation_goal, "implementationGoal"),
            "difficulty": _difficulty(difficulty),
            "projectName": str(project_context.get("name") or ""),
            "projectDescription": str(project_context.get("description") or ""),
        }
        result = await self._generate("quest", variables)
        if result is None:
            return fallback_quest(variables, self.prompts)
        return result

    async def generate_code_feedback(
        self,
        *,
        submitted_code: str,
        expected_code: str = "",
        file_path: str = "",
    ) -> dict:
        variables = {
            "submittedCode": _required(submitted_code, "submittedCode"),
            "expectedCode": expected_code or "",
            "filePath": file_path or "",
        }
        result = await self._generate("feedback", variables)
        if result is None:
            return fallback_feedback()
        return result

    async def generate_hints(
        self,
        *,
        step_goal: str,
        current_code: str = "",
        error_message: str = "",
        difficulty: str = "MEDIUM",
    ) -> dict:
        variables = {
            "currentCode": current_code or "",
            "errorMessage": error_message or "",
            "stepGoal": _required(step_goal, "stepGoal"),
            "difficulty": _difficulty(difficulty),
        }
        result = await self._generate("hint", variables)
        if result is None:
            return fallback_hints()
        return result

    async def generate_code_arrangement(
        self,
        *,
        original_code: str,
        learning_goal: str = "",
    ) -> dict:
        variables = {
            "originalCode": _required(original_code, "originalCode"),
            "learningGoal": learning_goal or "",
        }
        result = await self._generate("arrangement", variables)
        if result is None:
            return fallback_arrangement(variables["originalCode"], variables["learningGoal"])
        return result
