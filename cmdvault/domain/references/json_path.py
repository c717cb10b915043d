"""Dotted/indexed path extraction from structured command results.

``items[0].token`` walks key ``items``, index 0, key ``token``. A bare numeric
component indexes into an array. Anything missing yields ``None``.
"""
import json
import re
from typing import Any, List, Optional, Union

_COMPONENT = re.compile(r"^([^\[\]]*)((?:\[\d+\])*)$")
_INDEX = re.compile(r"\[(\d+)\]")

_MISSING = object()


def parse_path(path: str) -> Optional[List[Union[str, int]]]:
    """Split a path into keys (str) and indices (int). None when malformed."""
    steps: List[Union[str, int]] = []
    for component in path.split("."):
        match = _COMPONENT.match(component)
        if match is None:
            return None
        name, indices = match.groups()
        if not name and not indices:
            return None
        if name:
            steps.append(name)
        steps.extend(int(i) for i in _INDEX.findall(indices))
    return steps


def _step(current: Any, step: Union[str, int]) -> Any:
    if isinstance(step, int):
        if isinstance(current, list) and 0 <= step < len(current):
            return current[step]
        return _MISSING
    if isinstance(current, dict):
        return current.get(step, _MISSING)
    if isinstance(current, list) and step.isdigit():
        return _step(current, int(step))
    return _MISSING


def to_text(value: Any) -> str:
    """Render an extracted value the way it is substituted into text."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, (int, float)):
        return json.dumps(value)
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def extract(data: Any, path: str) -> Optional[str]:
    """Return the value at ``path`` as text, or None if any step is missing."""
    steps = parse_path(path)
    if steps is None:
        return None
    current = data
    for step in steps:
        current = _step(current, step)
        if current is _MISSING:
            return None
    return to_text(current)
