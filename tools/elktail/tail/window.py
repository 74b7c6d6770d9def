"""
Dedup window for overlap-safe tailing.

Each follow-up poll re-queries a short slice of time before the newest
timestamp already shown, so that documents which reached Elasticsearch
late (same millisecond, slow shard, clock skew) are not lost. The price
is that the slice also returns documents we have already printed. The
DedupWindow remembers (timestamp, id) for everything shown inside that
slice so the next query can exclude those ids explicitly.

Design Decisions:
    - Entries are kept sorted by timestamp. Pages are processed oldest
      first, so an insert is normally an append; a late arrival older
      than the newest entry is inserted in place
    - Eviction is a single scan from the front that stops at the first
      entry inside the window
    - Timestamps are canonical strings, compared lexicographically
    - There is no size cap. The window only holds what arrived within
      the last 500 ms of data, so its size follows the arrival rate
"""

import bisect
from typing import Dict, Iterator, List

from .model import DisplayedEntry


class DedupWindow:
    """
    Ordered buffer of recently displayed entries.

    Attributes:
        entries: DisplayedEntry list, oldest first.

    Example:
        >>> window = DedupWindow()
        >>> window.add("2024-01-15T12:00:00.100Z", "a")
        >>> window.add("2024-01-15T12:00:00.900Z", "b")
        >>> window.evict_older_than("2024-01-15T12:00:00.400Z")
        1
        >>> window.ids()
        ['b']
    """

    def __init__(self) -> None:
        self.entries: List[DisplayedEntry] = []
        # id -> number of entries carrying it
        self._ids: Dict[str, int] = {}

    def add(self, timestamp: str, doc_id: str) -> None:
        """Record a displayed document."""
        entry = DisplayedEntry(timestamp=timestamp, id=doc_id)
        if not self.entries or not entry < self.entries[-1]:
            self.entries.append(entry)
        else:
            bisect.insort(self.entries, entry)
        self._ids[doc_id] = self._ids.get(doc_id, 0) + 1

    def evict_older_than(self, cutoff: str) -> int:
        """
        Drop entries whose timestamp is strictly before cutoff.

        Scans from the oldest entry and stops at the first one at or
        after the cutoff.

        Args:
            cutoff: Canonical timestamp; entries equal to it are kept.

        Returns:
            int: Number of entries evicted.
        """
        evicted = 0
        while evicted < len(self.entries) and self.entries[evicted].is_before(cutoff):
            doc_id = self.entries[evicted].id
            self._ids[doc_id] -= 1
            if not self._ids[doc_id]:
                del self._ids[doc_id]
            evicted += 1
        del self.entries[:evicted]
        return evicted

    def ids(self) -> List[str]:
        return [entry.id for entry in self.entries]

    def __contains__(self, doc_id: object) -> bool:
        return doc_id in self._ids

    def __iter__(self) -> Iterator[DisplayedEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
