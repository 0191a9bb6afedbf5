from __future__ import annotations

import re
from typing import Any, Mapping

_TOKEN_RE = re.compile(r"\{(\w+)\}")


def interpolate(template: str, variables: Mapping[str, Any]) -> str:
    """Replace ``{name}`` tokens with ``str(variables[name])``.

    Tokens without a matching key are left as they are, braces included, so a
    half-filled template is still a readable prompt.
    """

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in variables:
            return str(variables[key])
        return match.group(0)

    return _TOKEN_RE.sub(_sub, template)


def interpolate_payload(value: Any, variables: Mapping[str, Any]) -> Any:
    if isinstance(value, str):
        return interpolate(value, variables)
    if isinstance(value, Mapping):
        return {key: interpolate_payload(item, variables) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [interpolate_payload(item, variables) for item in value]
    return value
