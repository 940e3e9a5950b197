import json
import logging
import os
from pathlib import Path
from typing import Dict

from pydantic import ValidationError

from gardenia.domain.errors import VersionStoreError
from gardenia.domain.models import InstallRecord
from gardenia.storage.version_store import VersionStore

logger = logging.getLogger(__name__)


class JsonVersionStore(VersionStore):
    """
    Version records persisted as a pretty-printed JSON object::

        {"owner/repo": {"Dir": "pack/start", "SHA": "<commit>"}}
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Dict[str, InstallRecord]:
        if not self._path.exists():
            return {}

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise VersionStoreError(f"cannot read {self._path}: {e}") from e

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise VersionStoreError(f"{self._path}: expected an object, got {type(raw).__name__}")

        try:
            records = {identity: InstallRecord.model_validate(value) for identity, value in raw.items()}
        except ValidationError as e:
            raise VersionStoreError(f"{self._path}: {e}") from e

        logger.debug(f"Loaded {len(records)} version records from {self._path}")
        return records

    def save(self, records: Dict[str, InstallRecord]) -> None:
        data = {identity: record.model_dump(by_alias=True) for identity, record in records.items()}
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")

        # Sorted keys: the file must not depend on the order installs finished in.
        # Written next to the target, then swapped in.
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise VersionStoreError(f"cannot write {self._path}: {e}") from e

        logger.debug(f"Saved {len(records)} version records to {self._path}")

    def clear(self) -> None:
        try:
            self._path.unlink(missing_ok=True)
        except OSError as e:
            raise VersionStoreError(f"cannot remove {self._path}: {e}") from e
