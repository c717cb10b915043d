import logging
from typing import List, Optional

from cmdvault.domain.interfaces import VariableRepository
from cmdvault.errors import DuplicateLabel, NotFound
from cmdvault.utils.id import short_id
from .models import Variable

logger = logging.getLogger(__name__)


class VariableStore:
    """Plaintext sibling of the Secure Value Store."""

    def __init__(self, repository: VariableRepository, ref_id_length: int = 6):
        self.repository = repository
        self.ref_id_length = ref_id_length

    def generate_id(self) -> str:
        return short_id(self.ref_id_length, exists=self.repository.exists)

    def set(self, value: str, label: Optional[str] = None, ref_id: Optional[str] = None) -> Variable:
        """Create a variable, or overwrite the value of ``ref_id`` when it exists."""
        if ref_id is not None:
            existing = self.repository.get(ref_id)
            if existing is not None:
                if label is not None and label != existing.label:
                    self.set_label(ref_id, label)
                self.repository.update_value(ref_id, value)
                return self.repository.get(ref_id)  # type: ignore[return-value]

        if label is not None and self.repository.get_by_label(label) is not None:
            raise DuplicateLabel(f"Variable label '{label}' already exists", label=label)

        variable = Variable(ref_id=ref_id or self.generate_id(), value=value, label=label)
        self.repository.insert(variable)
        logger.info(f"Created variable {variable.ref_id}")
        return variable

    def create_with_label(self, label: str, value: str) -> str:
        return self.set(value, label=label).ref_id

    def get(self, ref_id: str) -> Optional[str]:
        variable = self.repository.get(ref_id)
        return variable.value if variable else None

    def resolve_label(self, label: str) -> Optional[str]:
        variable = self.repository.get_by_label(label)
        return variable.ref_id if variable else None

    def label_for(self, ref_id: str) -> Optional[str]:
        variable = self.repository.get(ref_id)
        return variable.label if variable else None

    def update_value(self, ref_id: str, value: str) -> None:
        if not self.repository.exists(ref_id):
            raise NotFound(f"Variable {ref_id} not found", ref_id=ref_id)
        self.repository.update_value(ref_id, value)

    def set_label(self, ref_id: str, label: Optional[str]) -> None:
        if not self.repository.exists(ref_id):
            raise NotFound(f"Variable {ref_id} not found", ref_id=ref_id)
        if label is not None:
            owner = self.repository.get_by_label(label)
            if owner is not None and owner.ref_id != ref_id:
                raise DuplicateLabel(f"Variable label '{label}' already exists", label=label)
        self.repository.update_label(ref_id, label)

    def delete(self, ref_id: str) -> bool:
        return self.repository.delete(ref_id)

    def list(self) -> List[Variable]:
        return self.repository.list_variables()
