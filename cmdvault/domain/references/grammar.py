"""Placeholder grammar.

A small scanner over the fixed delimiter set. Author forms are written by
users and rewritten on save; canonical forms are what persisted text carries
and what the resolver substitutes at run time.

Matching follows a "first closing delimiter wins" rule: a body never contains
its closing delimiter, labels never contain ``:`` and empty bodies never match.
Scans are left to right and non-overlapping.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

LOCK = "\U0001F512"  # 🔒

BRACES = (("{", "}"),)
BRACES_OR_BRACKETS = (("{", "}"), ("[", "]"))
BACKTICKS = (("`", "`"),)


class PlaceholderKind(str, Enum):
    # Author forms, in canonicalization priority order
    ID_LABEL = "id_label"
    VAR_DEFINE = "var_define"
    VAR_LABEL = "var_label"
    ID_RAW = "id_raw"
    VAR_RAW = "var_raw"
    SECURE_DEFINE = "secure_define"
    SECURE_LABEL = "secure_label"
    SECURE_RAW = "secure_raw"
    # Canonical forms
    CHAIN = "chain"
    ID_REF = "id_ref"
    VAR_REF = "var_ref"
    SECURE_REF = "secure_ref"
    # Legacy run-time forms
    LEGACY_VAR = "legacy_var"
    LEGACY_SECURE = "legacy_secure"


@dataclass(frozen=True)
class Placeholder:
    kind: PlaceholderKind
    start: int
    end: int
    target: str
    value: Optional[str] = None
    path: Optional[str] = None

    @property
    def span(self) -> Tuple[int, int]:
        return self.start, self.end


# body -> (target, value, path) or None when the body does not fit the form
BodyParser = Callable[[str], Optional[Tuple[str, Optional[str], Optional[str]]]]


def _label_only(body: str):
    if ":" in body:
        return None
    return body, None, None


def _label_and_value(body: str):
    label, sep, value = body.partition(":")
    if not sep or not label or not value:
        return None
    return label, value, None


def _raw(body: str):
    return body, None, None


def _id_with_path(body: str):
    ref_id, sep, path = body.partition("|")
    if not ref_id or (sep and not path):
        return None
    return ref_id, None, path or None


def _bare_id(body: str):
    if "|" in body:
        return None
    return body, None, None


class _Form(NamedTuple):
    delimiters: Tuple[Tuple[str, str], ...]
    prefix: str
    parse: BodyParser


FORMS: Dict[PlaceholderKind, _Form] = {
    PlaceholderKind.ID_LABEL: _Form(BRACES_OR_BRACKETS, "id#", _label_only),
    PlaceholderKind.VAR_DEFINE: _Form(BRACES_OR_BRACKETS, "var#", _label_and_value),
    PlaceholderKind.VAR_LABEL: _Form(BRACES_OR_BRACKETS, "var#", _label_only),
    PlaceholderKind.ID_RAW: _Form(BRACES_OR_BRACKETS, "id:", _id_with_path),
    PlaceholderKind.VAR_RAW: _Form(BRACES_OR_BRACKETS, "var:", _raw),
    PlaceholderKind.SECURE_DEFINE: _Form(BRACES, "secure#", _label_and_value),
    PlaceholderKind.SECURE_LABEL: _Form(BRACES, "secure#", _label_only),
    PlaceholderKind.SECURE_RAW: _Form(BRACES, "secure:", _raw),
    PlaceholderKind.CHAIN: _Form(BACKTICKS, "command@", _id_with_path),
    PlaceholderKind.ID_REF: _Form(BACKTICKS, "id@", _id_with_path),
    PlaceholderKind.VAR_REF: _Form(BACKTICKS, "var@", _bare_id),
    PlaceholderKind.SECURE_REF: _Form(BRACES, LOCK + ":", _raw),
    PlaceholderKind.LEGACY_VAR: _Form(BRACES, "var:", _raw),
    PlaceholderKind.LEGACY_SECURE: _Form(BACKTICKS, "secure@", _raw),
}

AUTHOR_KINDS = (
    PlaceholderKind.ID_LABEL,
    PlaceholderKind.VAR_DEFINE,
    PlaceholderKind.VAR_LABEL,
    PlaceholderKind.ID_RAW,
    PlaceholderKind.VAR_RAW,
    PlaceholderKind.SECURE_DEFINE,
    PlaceholderKind.SECURE_LABEL,
    PlaceholderKind.SECURE_RAW,
)


def scan(text: str, kind: PlaceholderKind) -> List[Placeholder]:
    """Find every occurrence of ``kind`` in ``text``, left to right."""
    form = FORMS[kind]
    closers = dict(form.delimiters)
    found: List[Placeholder] = []
    i = 0
    while i < len(text):
        closer = closers.get(text[i])
        if closer is None or not text.startswith(form.prefix, i + 1):
            i += 1
            continue
        body_start = i + 1 + len(form.prefix)
        close = text.find(closer, body_start)
        if close <= body_start:
            i += 1
            continue
        parsed = form.parse(text[body_start:close])
        if parsed is None:
            i += 1
            continue
        target, value, path = parsed
        found.append(Placeholder(kind, i, close + 1, target, value, path))
        i = close + 1
    return found


def contains_author_forms(text: str) -> bool:
    return any(scan(text, kind) for kind in AUTHOR_KINDS)


def replace_right_to_left(text: str, replacements: List[Tuple[Placeholder, str]]) -> str:
    """Apply replacements from the last match backwards so earlier offsets stay valid."""
    for placeholder, replacement in sorted(replacements, key=lambda r: r[0].start, reverse=True):
        text = text[:placeholder.start] + replacement + text[placeholder.end:]
    return text


def id_token(ref_id: str, path: Optional[str] = None) -> str:
    return f"`id@{ref_id}|{path}`" if path else f"`id@{ref_id}`"


def command_token(ref_id: str, path: Optional[str] = None) -> str:
    return f"`command@{ref_id}|{path}`" if path else f"`command@{ref_id}`"


def var_token(ref_id: str) -> str:
    return f"`var@{ref_id}`"


def secure_token(ref_id: str) -> str:
    return "{" + LOCK + ":" + ref_id + "}"
