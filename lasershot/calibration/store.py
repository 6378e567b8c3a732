"""Key-value stores for persisting calibration records."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from platformdirs import user_config_dir

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """String key-value store used for calibration persistence."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryStore:
    """In-process store, used for tests and dry runs."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None


class JsonFileStore:
    """
    Store backed by a single JSON document on disk.

    Writes go to a temporary file in the same directory that is then
    renamed over the document, so readers see either the previous or the
    new content and never a partial write.
    """

    def __init__(self, path: Optional[Path] = None):
        """
        Args:
            path: JSON file location.
                  Defaults to <user config dir>/lasershot/calibration.json
        """
        if path is None:
            path = Path(user_config_dir("lasershot")) / "calibration.json"
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed store {self.path}")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def delete(self, key: str) -> bool:
        data = self._read_all()
        if key not in data:
            return False
        del data[key]
        self._write_all(data)
        return True

    def _write_all(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Wrote {len(data)} key(s) to {self.path}")
