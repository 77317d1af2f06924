"""Guest cart persisted to a local JSON file."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path

import structlog

logger = structlog.get_logger()


class GuestCartStore:
    """Stores the app ids of a signed-out cart. Writes are atomic (temp file + rename)."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> list[int]:
        """Stored app ids; an unreadable or malformed file counts as an empty cart."""
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            app_ids = data["app_ids"] if isinstance(data, dict) else None
            if not isinstance(app_ids, list):
                msg = "app_ids must be a list"
                raise TypeError(msg)
            return [int(app_id) for app_id in app_ids]
        except (OSError, KeyError, TypeError, ValueError):
            logger.warning("guest_cart_unreadable", path=str(self.path))
            return []

    def save(self, app_ids: list[int]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".guest_cart.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"app_ids": list(app_ids)}, f)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
