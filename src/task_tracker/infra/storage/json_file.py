from __future__ import annotations
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from task_tracker.domain.errors import LoadError

logger = logging.getLogger("tracker.storage")


class JsonFileStorage:
    """
    Whole-document JSON storage.

    Every write replaces the file in full (temp file + rename), so readers see
    either the previous or the new document. Overlapping writers are not
    coordinated: whichever finishes last wins.
    """
    def __init__(self, path: str | Path):
        # path like "./data/tasks.json"
        self.path = Path(path).resolve()

    def __str__(self) -> str:
        return str(self.path)

    async def prepare(self) -> None:
        await asyncio.to_thread(self.path.parent.mkdir, parents=True, exist_ok=True)

    async def read(self) -> Optional[dict[str, Any]]:
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        except FileNotFoundError:
            logger.info(
                "storage.absent",
                extra={"category": "storage", "event": "storage.absent", "path": str(self.path)},
            )
            return None
        except OSError as e:
            raise LoadError(str(self.path), str(e)) from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise LoadError(str(self.path), f"malformed JSON ({e})") from e
        if not isinstance(data, dict):
            raise LoadError(str(self.path), "top-level value is not an object")
        return data

    async def write(self, document: dict[str, Any]) -> None:
        text = json.dumps(document, indent=2, ensure_ascii=False)
        await asyncio.to_thread(self._replace, text)
        logger.debug(
            "storage.write",
            extra={"category": "storage", "event": "storage.write", "path": str(self.path), "bytes": len(text)},
        )

    def _replace(self, text: str) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
