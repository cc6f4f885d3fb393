"""
Identifier remap table.

Built while patients are merged, then read by every dependent-collection
merge of the same run: superseded local patient id -> surviving patient id.
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterator, Mapping

logger = logging.getLogger(__name__)


class RemapTable(Mapping[str, str]):
    """
    Write-once mapping from a superseded id to the id that replaced it.

    The first mapping recorded for an id wins; later attempts are ignored.
    Lives for a single reconciliation run.
    """

    def __init__(self):
        self._entries: Dict[str, str] = {}

    def record(self, superseded_id: str, surviving_id: str) -> bool:
        """Map superseded_id to surviving_id. Returns False if it was already mapped."""
        if superseded_id in self._entries:
            logger.debug(
                "Ignoring second remap for %s (already -> %s)",
                superseded_id, self._entries[superseded_id]
            )
            return False
        self._entries[superseded_id] = surviving_id
        return True

    def freeze(self) -> Mapping[str, str]:
        """Read-only snapshot handed to downstream mergers."""
        return MappingProxyType(dict(self._entries))

    def __getitem__(self, key: str) -> str:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"RemapTable({self._entries!r})"
