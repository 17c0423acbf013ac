# preferences.py
import json
import logging
from dataclasses import dataclass, asdict, fields
from typing import Optional

logger = logging.getLogger(__name__)

PREFERENCES_FILE = "preferences.json"
DEFAULT_RETENTION_COUNT = 10


@dataclass
class Preferences:
    local_backup_path: Optional[str] = None
    backup_retention_count: int = DEFAULT_RETENTION_COUNT
    last_backup_timestamp: Optional[str] = None
    path: str = PREFERENCES_FILE

    def normalize(self) -> None:
        try:
            count = int(self.backup_retention_count)
        except (TypeError, ValueError):
            count = DEFAULT_RETENTION_COUNT
        self.backup_retention_count = max(1, count)
        if self.local_backup_path is not None:
            self.local_backup_path = str(self.local_backup_path).strip() or None

    def load_preferences(self) -> None:
        known = {f.name for f in fields(self)} - {"path"}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return
        except (OSError, ValueError) as e:
            logger.warning("Could not load preferences from %s, using defaults: %s", self.path, e)
            return
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed preferences in %s", self.path)
            return
        for key, value in data.items():
            if key in known:
                setattr(self, key, value)
        self.normalize()

    def save_preferences(self) -> None:
        data = asdict(self)
        data.pop("path")
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=4)
