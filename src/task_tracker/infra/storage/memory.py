from __future__ import annotations
import copy
from typing import Any, Dict, Optional


class InMemoryStorage:
    """
    Keeps the last written document in memory.
    Used by tests and throwaway stores; same contract as JsonFileStorage.
    """
    def __init__(self, document: Optional[Dict[str, Any]] = None):
        self.document = copy.deepcopy(document)
        self.writes = 0

    def __str__(self) -> str:
        return "<memory>"

    async def prepare(self) -> None:
        return None

    async def read(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self.document)

    async def write(self, document: Dict[str, Any]) -> None:
        self.document = copy.deepcopy(document)
        self.writes += 1
