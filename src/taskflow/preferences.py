from __future__ import annotations

import json
import logging
import os
from threading import Lock
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DARK_MODE_KEY = "darkMode"


class PreferenceStore:
    """
    Durable string key/value preferences kept in a single JSON file.

    Values are stored as text; booleans are written as "true"/"false".
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = Lock()

    def _read(self) -> Dict[str, str]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.warning("Preferences file %s is unreadable; using defaults", self.path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: Dict[str, str]) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def get_dark_mode(self) -> bool:
        return self.get_item(DARK_MODE_KEY) == "true"

    def set_dark_mode(self, enabled: bool) -> bool:
        self.set_item(DARK_MODE_KEY, "true" if enabled else "false")
        return enabled

    def toggle_dark_mode(self) -> bool:
        with self._lock:
            data = self._read()
            enabled = data.get(DARK_MODE_KEY) != "true"
            data[DARK_MODE_KEY] = "true" if enabled else "false"
            self._write(data)
        return enabled
