"""Author-time rewrite of placeholders into canonical text.

Rules run in a fixed priority order. Each rule scans the string as left by the
previous rules and rewrites its own matches right to left. Any error aborts
the field: records created for that field are removed again and the original
text is kept.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from cmdvault.domain.interfaces import CommandCatalog
from cmdvault.domain.secrets.manager import SecureValueStore
from cmdvault.domain.variables.manager import VariableStore
from cmdvault.errors import CanonicalizationError, DuplicateLabel, LabelNotFound, VaultError
from . import grammar
from .grammar import Placeholder, PlaceholderKind as K

logger = logging.getLogger(__name__)

QUOTE_MAP = {
    "“": '"',
    "”": '"',
    "‘": "'",
    "’": "'",
}


def normalize_quotes(text: str) -> str:
    """Replace typographic quotes with straight ones (shell bodies only)."""
    for curly, straight in QUOTE_MAP.items():
        text = text.replace(curly, straight)
    return text


# (store name, ref_id) of a record created during a rewrite
Created = Tuple[str, str]


@dataclass
class CanonicalizedFields:
    fields: Dict[str, str]
    errors: Dict[str, CanonicalizationError] = field(default_factory=dict)
    # Records kept by the fields that succeeded
    created: List[Created] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class Canonicalizer:
    def __init__(self, secure_values: SecureValueStore, variables: VariableStore,
                 catalog: CommandCatalog):
        self.secure_values = secure_values
        self.variables = variables
        self.catalog = catalog
        self._rules: List[Tuple[K, Callable[[Placeholder, List[Created]], str]]] = [
            (K.ID_LABEL, self._id_label),
            (K.VAR_DEFINE, self._var_define),
            (K.VAR_LABEL, self._var_label),
            (K.ID_RAW, self._id_raw),
            (K.VAR_RAW, self._var_raw),
            (K.SECURE_DEFINE, self._secure_define),
            (K.SECURE_LABEL, self._secure_label),
            (K.SECURE_RAW, self._secure_raw),
        ]

    def canonicalize(self, text: str, field_name: Optional[str] = None) -> str:
        """Rewrite ``text`` into canonical form.

        Raises CanonicalizationError carrying the wrapped LabelNotFound or
        DuplicateLabel and the span of the offending placeholder. Nothing
        created for this text survives a failure.
        """
        result, _ = self._rewrite(text, field_name)
        return result

    def canonicalize_fields(self, fields: Dict[str, str], atomic: bool = False) -> CanonicalizedFields:
        """Canonicalize several fields of one command.

        By default each field stands alone: a failing field keeps its
        original text while other fields keep their rewrites. With
        ``atomic=True`` any failure rolls back every field.
        """
        out = CanonicalizedFields(fields=dict(fields))
        for name, text in fields.items():
            try:
                rewritten, created = self._rewrite(text, name)
            except CanonicalizationError as e:
                out.errors[name] = e
                logger.info("Canonicalization of field '%s' failed: %s at %s", name, e.error.code, e.span)
                if atomic:
                    break
                continue
            out.fields[name] = rewritten
            out.created.extend(created)

        if atomic and out.errors:
            self.discard(out)
            out.fields = dict(fields)
        return out

    def discard(self, result: CanonicalizedFields) -> None:
        """Remove the records created for ``result``'s rewritten fields.

        For callers that decide not to keep the rewrite after all.
        """
        self._rollback(result.created)

    def to_display(self, text: str) -> str:
        """Render canonical references as ``[label]`` (or ``[id]`` when unlabeled)."""
        def command_label(ref_id: str) -> Optional[str]:
            item = self.catalog.get_item(ref_id)
            return getattr(item, "label", None)

        lookups = (
            ((K.CHAIN, K.ID_REF), command_label),
            ((K.VAR_REF, K.LEGACY_VAR), self.variables.label_for),
            ((K.SECURE_REF, K.LEGACY_SECURE), self.secure_values.label_for),
        )
        for kinds, lookup in lookups:
            for kind in kinds:
                replacements = []
                for p in grammar.scan(text, kind):
                    name = lookup(p.target) or p.target
                    replacements.append((p, f"[{name}|{p.path}]" if p.path else f"[{name}]"))
                text = grammar.replace_right_to_left(text, replacements)
        return text

    def _rewrite(self, text: str, field_name: Optional[str]) -> Tuple[str, List[Created]]:
        current = text
        created: List[Created] = []
        for kind, rule in self._rules:
            matches = grammar.scan(current, kind)
            for index in range(len(matches) - 1, -1, -1):
                placeholder = matches[index]
                try:
                    replacement = rule(placeholder, created)
                except VaultError as e:
                    self._rollback(created)
                    span = self._source_span(text, kind, index, placeholder)
                    raise CanonicalizationError(e, span, field=field_name) from e
                current = current[:placeholder.start] + replacement + current[placeholder.end:]
        return current, created

    @staticmethod
    def _source_span(text: str, kind: K, index: int, placeholder: Placeholder) -> Tuple[int, int]:
        """Span of the ``index``-th ``kind`` match in the caller's text.

        Earlier rules rewrite other forms only, so the n-th match of a kind
        in the working string is the n-th match in the original text.
        """
        original = grammar.scan(text, kind)
        if len(original) > index and original[index].target == placeholder.target:
            return original[index].span
        return placeholder.span

    def _rollback(self, created: List[Created]) -> None:
        for store, ref_id in reversed(created):
            if store == "secure":
                self.secure_values.delete(ref_id)
            else:
                self.variables.delete(ref_id)
        if created:
            logger.info(f"Rolled back {len(created)} record(s) created during canonicalization")
        created.clear()

    # Rules

    def _id_label(self, p: Placeholder, created: List[Created]) -> str:
        command_id = self.catalog.command_id_by_label(p.target)
        if command_id is None:
            raise LabelNotFound(f"No command labeled '{p.target}'", label=p.target)
        return grammar.id_token(command_id)

    def _var_define(self, p: Placeholder, created: List[Created]) -> str:
        if self.variables.resolve_label(p.target) is not None:
            raise DuplicateLabel(f"Variable label '{p.target}' already exists", label=p.target)
        variable = self.variables.set(p.value, label=p.target)
        created.append(("var", variable.ref_id))
        return grammar.var_token(variable.ref_id)

    def _var_label(self, p: Placeholder, created: List[Created]) -> str:
        ref_id = self.variables.resolve_label(p.target)
        if ref_id is None:
            raise LabelNotFound(f"No variable labeled '{p.target}'", label=p.target)
        return grammar.var_token(ref_id)

    def _id_raw(self, p: Placeholder, created: List[Created]) -> str:
        return grammar.id_token(p.target, p.path)

    def _var_raw(self, p: Placeholder, created: List[Created]) -> str:
        return grammar.var_token(p.target)

    def _secure_define(self, p: Placeholder, created: List[Created]) -> str:
        ref_id = self.secure_values.with_label(p.value, p.target)
        created.append(("secure", ref_id))
        return grammar.secure_token(ref_id)

    def _secure_label(self, p: Placeholder, created: List[Created]) -> str:
        ref_id = self.secure_values.resolve_label(p.target)
        if ref_id is None:
            raise LabelNotFound(f"No secure value labeled '{p.target}'", label=p.target)
        return grammar.secure_token(ref_id)

    def _secure_raw(self, p: Placeholder, created: List[Created]) -> str:
        ref_id, _ = self.secure_values.encrypt(p.target)
        created.append(("secure", ref_id))
        return grammar.secure_token(ref_id)
