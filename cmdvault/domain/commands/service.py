import logging
from typing import Tuple

from cmdvault.domain.interfaces import CommandCatalog
from cmdvault.domain.references.canonicalizer import Canonicalizer, CanonicalizedFields, normalize_quotes
from .models import Command

logger = logging.getLogger(__name__)


class CommandService:
    """Saves commands with their text fields canonicalized."""

    def __init__(self, catalog: CommandCatalog, canonicalizer: Canonicalizer, atomic: bool = False):
        self.catalog = catalog
        self.canonicalizer = canonicalizer
        self.atomic = atomic

    def save(self, command: Command) -> Tuple[bool, CanonicalizedFields]:
        """Canonicalize and persist ``command``.

        Fields that fail keep their previous stored text; the returned errors
        say which and where. A new command with a failing field is not
        stored at all, since its raw text may hold secret plaintext, and the
        records its other fields created are removed again.
        """
        fields = command.text_fields()
        fields["command"] = normalize_quotes(fields["command"])
        result = self.canonicalizer.canonicalize_fields(fields, atomic=self.atomic)

        if result.errors:
            previous = self.catalog.get_item(command.id)
            if self.atomic or not isinstance(previous, Command):
                self.canonicalizer.discard(result)
                logger.warning("Command %s not saved: %s failed", command.id, sorted(result.errors))
                return False, result
            stored = previous.text_fields()
            for name in result.errors:
                result.fields[name] = stored.get(name, "")

        self.catalog.save_command(command.with_text_fields(result.fields))
        logger.info(f"Saved command {command.id}")
        return True, result
