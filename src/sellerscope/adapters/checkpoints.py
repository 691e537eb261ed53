"""JSON file storage for resumable scan cursors."""

from __future__ import annotations

import json
import os
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)


class JsonFileCheckpointStore:
    """Keep named cursors in one small JSON object on disk.

    Writes go to a sibling temp file that is then renamed over the original, so a
    crash mid-write never leaves a truncated checkpoint behind.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self, name: str) -> str | None:
        cursor = self._read().get(name)
        return cursor if isinstance(cursor, str) else None

    def save(self, name: str, cursor: str | None) -> None:
        document = self._read()
        if cursor is None:
            document.pop(name, None)
        else:
            document[name] = cursor
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(document, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)
        log.debug("Checkpoint %s saved at cursor %s", name, cursor)

    def _read(self) -> dict[str, object]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        loaded = json.loads(raw) if raw.strip() else {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Checkpoint file {self.path} does not hold a JSON object")
        return loaded
