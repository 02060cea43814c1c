"""Active-tournament registry.

In-memory tournament_id -> ClockRecord map. Records are replaced as whole
values; nothing outside the owning scheduler iteration mutates fields.

Every set/delete bumps the tournament's generation. A caller that awaits
the backend before seeding captures the generation first and drops its
result when it moved (a pause or another start landed in between).
"""

from __future__ import annotations

from collections import defaultdict
from typing import DefaultDict, Dict, Iterator, List, Optional

from .models import ClockRecord


class ClockRegistry:
    """Owner of every live ClockRecord in this process."""

    def __init__(self) -> None:
        self._records: Dict[str, ClockRecord] = {}
        self._generations: DefaultDict[str, int] = defaultdict(int)

    def get(self, tournament_id: str) -> Optional[ClockRecord]:
        return self._records.get(tournament_id)

    def generation(self, tournament_id: str) -> int:
        return self._generations.get(tournament_id, 0)

    def set(self, tournament_id: str, record: ClockRecord) -> Optional[ClockRecord]:
        """Store `record`, returning the record it replaced (if any)."""
        if record.tournament_id != tournament_id:
            raise ValueError(
                f"record for {record.tournament_id} stored under {tournament_id}"
            )
        previous = self._records.get(tournament_id)
        self._records[tournament_id] = record
        self._generations[tournament_id] += 1
        return previous

    def delete(self, tournament_id: str) -> Optional[ClockRecord]:
        """Remove the record. Bumps the generation even on a miss."""
        self._generations[tournament_id] += 1
        return self._records.pop(tournament_id, None)

    def has(self, tournament_id: str) -> bool:
        return tournament_id in self._records

    def ids(self) -> List[str]:
        return list(self._records)

    def clear(self) -> None:
        for tournament_id in self._records:
            self._generations[tournament_id] += 1
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[ClockRecord]:
        return iter(list(self._records.values()))
