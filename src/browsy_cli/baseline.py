"""
In-memory store of accessibility baselines.

One store belongs to one SessionContext and lives exactly as long as the
session. Access is serialized by the session's execution guard, so the
store does no locking of its own.
"""

import logging
from typing import Optional

from .accessibility import NormalizedAXNode

logger = logging.getLogger(__name__)


class BaselineStore:
    """Keyed table of normalized snapshots. Latest write wins."""

    def __init__(self):
        self._baselines: dict[str, list[NormalizedAXNode]] = {}

    def get(self, key: str) -> Optional[list[NormalizedAXNode]]:
        return self._baselines.get(key)

    def set(self, key: str, snapshot: list[NormalizedAXNode]) -> None:
        logger.debug(f"Storing baseline {key!r} ({len(snapshot)} nodes)")
        self._baselines[key] = list(snapshot)

    def keys(self) -> list[str]:
        return list(self._baselines)

    def clear(self) -> None:
        self._baselines.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._baselines

    def __len__(self) -> int:
        return len(self._baselines)
