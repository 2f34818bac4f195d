from __future__ import annotations

from typing import Dict, Iterator, List, Set

from .readlocClasses import Interval, LogicalRead, ReadSegment


class ReadSegmentCollector:
    """
    Groups alignment blocks by read id until the read is flushed.

    Each read keeps a set of intervals, so a block reported twice for the same
    read (e.g. by several records of one multi-mapped alignment) is held once.
    Dict insertion order gives first-seen order for drain().
    """

    def __init__(self) -> None:
        self._reads: Dict[str, Set[Interval]] = {}

    def accept(self, segment: ReadSegment) -> None:
        self._reads.setdefault(segment.read_id, set()).add(segment.interval)

    def flush(self, read_id: str) -> LogicalRead:
        # Unknown ids give an empty read, not an error
        segs = self._reads.pop(read_id, None)
        if not segs:
            return LogicalRead(read_id)
        return LogicalRead(read_id, frozenset(segs))

    def pending(self) -> List[str]:
        return list(self._reads.keys())

    def drain(self) -> Iterator[LogicalRead]:
        for read_id in self.pending():
            yield self.flush(read_id)

    def __len__(self) -> int:
        return len(self._reads)

    def __contains__(self, read_id: object) -> bool:
        return read_id in self._reads
