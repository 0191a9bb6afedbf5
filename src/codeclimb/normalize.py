from __future__ import annotations
import re

_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_BLOCK_COMMENT_RE = re.compile(r"/\*[\s\S]*?\*/")
_LINE_COMMENT_RE = re.compile(r"//.*$", re.MULTILINE)
_HASH_COMMENT_RE = re.compile(r"#.*$", re.MULTILINE)

def sanitize_code(code: str) -> str:
    # keep newlines and tabs
    return _CONTROL_RE.sub("", code or "")

def normalize_code(code: str) -> str:
    s = _BLOCK_COMMENT_RE.sub("", code or "")
    s = _LINE_COMMENT_RE.sub("", s)
    s = _HASH_COMMENT_RE.sub("", s)
    s = re.sub(r"\s+", " ", s)
    return s.strip()

def file_extension(path: str) -> str:
    name = (path or "").rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].lower()

def non_blank_lines(code: str) -> list[str]:
    return [line for line in (code or "").split("\n") if line.strip()]
