from __future__ import annotations

import logging
from typing import Any

from .normalize import file_extension, normalize_code, sanitize_code

logger = logging.getLogger(__name__)

ARRANGEMENT_HINTS = [
    "Think about how each line depends on the others",
    "Variables must be defined before they are used",
    "Pay attention to the order in which functions are called",
]
OUTPUT_HINTS = [
    "Run the code and check the console for errors",
    "Check the spelling of variable and function names",
    "Check that every bracket is closed",
]
_OPENERS = {"{": "}", "(": ")", "[": "]"}
_BRACKET_NAMES = {"{": "curly braces {}", "(": "parentheses ()", "[": "square brackets []"}
_JS_EXTS = {"js", "jsx", "ts", "tsx"}


def _result(success: bool, score: int, feedback: str, hints, improvements, errors) -> dict[str, Any]:
    return {
        "success": success,
        "score": max(0, min(100, int(score))),
        "feedback": feedback,
        "hints": list(hints),
        "improvements": list(improvements),
        "errors": list(errors),
    }


def _levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a
    prev = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        cur = [i]
        for j, cb in enumerate(b, start=1):
            insert = cur[j - 1] + 1
            delete = prev[j] + 1
            replace = prev[j - 1] + (ca != cb)
            cur.append(min(insert, delete, replace))
        prev = cur
    return prev[-1]


def similarity(a: str, b: str) -> float:
    if a == b:
        return 1.0
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - _levenshtein(a, b)) / longest


def _block_order(block: dict[str, Any]) -> int:
    try:
        return int(block.get("correctOrder") or 0)
    except (TypeError, ValueError):
        return 0


def verify_arrangement(puzzle: dict[str, Any], submitted_ids: list[str]) -> dict[str, Any]:
    blocks = [b for b in (puzzle.get("shuffledBlocks") or []) if isinstance(b, dict)]
    expected = [str(b.get("id")) for b in sorted(blocks, key=_block_order)]
    if not expected:
        return _result(True, 100, "Arrangement complete!", [], [], [])

    errors: list[dict[str, Any]] = []
    missing = [bid for bid in expected if bid not in submitted_ids]
    unknown = [bid for bid in submitted_ids if bid not in expected]
    for bid in missing:
        errors.append({"type": "missing", "message": f"block {bid} is not placed"})
    for bid in unknown:
        errors.append({"type": "logic", "message": f"block {bid} is not part of this puzzle"})

    in_place = sum(1 for idx, bid in enumerate(expected) if idx < len(submitted_ids) and submitted_ids[idx] == bid)
    score = round(in_place / len(expected) * 100)
    correct = in_place == len(expected) and len(submitted_ids) == len(expected)
    if not correct and not errors:
        errors.append({"type": "logic", "message": "the blocks are not in the right order"})
    return _result(
        correct,
        score,
        "Correct! The code is in the right order." if correct else "The order is not right yet. Check the sequence.",
        [] if correct else ARRANGEMENT_HINTS,
        [],
        errors,
    )


def _check_line(line: str, line_no: int, ext: str) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []
    trimmed = line.strip()
    if ext in _JS_EXTS:
        if trimmed.startswith("function") and "(" not in trimmed:
            errors.append({
                "type": "syntax",
                "line": line_no,
                "message": "function definition is missing parentheses",
                "suggestion": "define it as function name() { ... }",
            })
    elif ext == "py":
        indent = len(line) - len(line.lstrip(" "))
        if indent % 4:
            errors.append({
                "type": "style",
                "line": line_no,
                "message": "indent with a multiple of four spaces",
                "suggestion": "use four spaces per indentation level",
            })
        if trimmed.startswith(("if ", "for ", "while ", "def ", "class ", "elif ")) and not trimmed.endswith(":"):
            errors.append({
                "type": "syntax",
                "line": line_no,
                "message": "control statement is missing a colon",
                "suggestion": "end the line with :",
            })
    elif ext == "css":
        if ":" in trimmed and not trimmed.endswith((";", "{", "}")):
            errors.append({
                "type": "syntax",
                "line": line_no,
                "message": "CSS property is missing a semicolon",
                "suggestion": "end the property with ;",
            })
    return errors


def check_syntax(code: str, ext: str) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []
    balance = {opener: 0 for opener in _OPENERS}
    closers = {closer: opener for opener, closer in _OPENERS.items()}
    for line_no, line in enumerate(code.split("\n"), start=1):
        trimmed = line.strip()
        if trimmed.startswith(("//", "#", "/*", "*")):
            continue
        for ch in line:
            if ch in balance:
                balance[ch] += 1
            elif ch in closers:
                balance[closers[ch]] -= 1
        errors.extend(_check_line(line, line_no, ext))
    for opener, count in balance.items():
        if count:
            errors.append({
                "type": "syntax",
                "message": f"unbalanced {_BRACKET_NAMES[opener]}",
                "suggestion": "check that every opening bracket has a closing one",
            })
    return errors


def check_style(code: str, ext: str) -> list[str]:
    improvements: list[str] = []
    if any(len(line) > 120 for line in code.split("\n")):
        improvements.append("Some lines are longer than 120 characters")
    if ext in _JS_EXTS and "var " in code:
        improvements.append("Use let or const instead of var")
    return improvements


def verify_implementation(submitted_code: str, expected_code: str | None, file_path: str) -> dict[str, Any]:
    code = sanitize_code(submitted_code)
    ext = file_extension(file_path)
    errors = check_syntax(code, ext)
    improvements = check_style(code, ext)
    syntax_count = sum(1 for e in errors if e["type"] == "syntax")
    style_count = len(errors) - syntax_count + len(improvements)

    ratio = 1.0
    if expected_code:
        ratio = similarity(normalize_code(code), normalize_code(expected_code))
    score = round(max(0, 100 - syntax_count * 20 - style_count * 5) * ratio)
    success = score >= 70
    logger.info(
        "verify_implementation ext=%s errors=%s improvements=%s similarity=%.2f score=%s",
        ext or "-",
        len(errors),
        len(improvements),
        ratio,
        score,
    )
    hints: list[str] = []
    if not success:
        hints = [e["suggestion"] for e in errors if e.get("suggestion")][:3] or list(OUTPUT_HINTS)
    return _result(
        success,
        score,
        "Implementation complete!" if success else "There are a few problems in the implementation. Try fixing them.",
        hints,
        improvements,
        errors,
    )
