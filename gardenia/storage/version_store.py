from abc import ABC, abstractmethod
from typing import Dict

from gardenia.domain.models import InstallRecord


class VersionStore(ABC):
    """
    Abstract base class for installed-version storage.

    A store holds the mapping from bundle identity to InstallRecord. It is
    read once at the start of a pass and replaced wholesale at the end.
    """

    @abstractmethod
    def load(self) -> Dict[str, InstallRecord]:
        """Return the persisted records (empty when nothing was persisted)."""
        pass

    @abstractmethod
    def save(self, records: Dict[str, InstallRecord]) -> None:
        """Replace the persisted records with ``records``."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Forget all persisted records."""
        pass
