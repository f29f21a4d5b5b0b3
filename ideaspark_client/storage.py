"""
String-keyed persistent store for the client SDK.

A small JSON file plays the role a browser's localStorage plays for the web
client: every read loads the file and every write replaces it. Writes are
atomic per call, but read-modify-write sequences across processes are not
transactional.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Union

from shared.errors import LocalStorageUnavailable

DEFAULT_STORAGE_PATH = Path.home() / ".ideaspark" / "storage.json"


class LocalStore:
    """JSON-file backed key/value store with string values."""

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else DEFAULT_STORAGE_PATH

    def _load(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise LocalStorageUnavailable(details={"path": str(self.path), "error": str(exc)}) from exc
        except UnicodeDecodeError as exc:
            raise LocalStorageUnavailable("Local storage is corrupt", details={"path": str(self.path)}) from exc

        if not raw.strip():
            return {}
        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise LocalStorageUnavailable("Local storage is corrupt", details={"path": str(self.path)}) from exc
        if not isinstance(data, dict):
            raise LocalStorageUnavailable("Local storage is corrupt", details={"path": str(self.path)})
        return data

    def _save(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=".storage-")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            raise LocalStorageUnavailable(details={"path": str(self.path), "error": str(exc)}) from exc

    def get_item(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)
