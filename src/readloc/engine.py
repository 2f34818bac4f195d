from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Set, Tuple

from .assign import ASSIGNERS
from .collector import ReadSegmentCollector
from .counter import RegionCounter
from .errors import EngineClosed, ReadNotContiguous
from .index import RegionIndex
from .readlocClasses import Interval, ReadSegment, Region

FLUSH_POLICIES = ("end", "contiguous")


class EngineState(Enum):
    LOADING = "loading"
    STREAMING = "streaming"
    FLUSHING = "flushing"
    FINALIZED = "finalized"


class CountEngine:
    """
    Single-pass read -> region counter.

    Segments go into a collector keyed by read id; when a read is flushed its
    blocks are resolved against the region index into a set of region ids and
    that set is counted once. Flush policy:

      end         hold every read until finalize() (always correct)
      contiguous  flush a read as soon as another read id arrives; only valid
                  when all blocks of a read arrive together (name-sorted BAM).
                  Flushed ids are remembered and a returning id raises
                  ReadNotContiguous instead of being counted twice.

    With stranded, a block only credits regions on its own strand (regions
    or blocks with strand "." match either).
    """

    def __init__(
        self,
        regions: RegionIndex | Iterable[Region],
        *,
        assign_mode: str = "all",
        flush: str = "end",
        stranded: bool = False,
        merge_overlapping: bool = False,
        on_assign: Optional[Callable[[str, Set[str]], None]] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if assign_mode not in ASSIGNERS:
            raise ValueError(f"Unknown assign mode: {assign_mode!r} (expected one of {sorted(ASSIGNERS)})")
        if flush not in FLUSH_POLICIES:
            raise ValueError(f"Unknown flush policy: {flush!r} (expected one of {list(FLUSH_POLICIES)})")

        self.state = EngineState.LOADING
        if isinstance(regions, RegionIndex):
            self.index = regions
        else:
            self.index = RegionIndex.build(regions, merge_overlapping=merge_overlapping, logger=logger)

        self.assign_mode = assign_mode
        self.flush_policy = flush
        self.stranded = stranded
        self._assign = ASSIGNERS[assign_mode]
        self._collector = ReadSegmentCollector()
        self._counter = RegionCounter(self.index.region_ids())
        self._current: Optional[str] = None
        self._flushed: Set[str] = set()
        self._on_assign = on_assign
        self._logger = logger
        self.stats: Dict[str, int] = {"segments": 0, "reads": 0, "reads_assigned": 0}
        self.state = EngineState.STREAMING

    def _check_open(self, what: str) -> None:
        if self.state is EngineState.FINALIZED:
            raise EngineClosed(f"Cannot {what}: engine already finalized")

    def accept(self, segment: ReadSegment) -> None:
        if self.state is not EngineState.STREAMING:
            raise EngineClosed(f"Cannot accept segments: engine is {self.state.value}")
        rid = segment.read_id
        if self.flush_policy == "contiguous":
            if rid in self._flushed:
                raise ReadNotContiguous(
                    f"Read {rid!r} has blocks after it was already flushed; its records are not "
                    f"contiguous. Use --flush end or sort with: samtools sort -n"
                )
            if self._current is not None and rid != self._current:
                self.flush(self._current)
        self._current = rid
        self._collector.accept(segment)
        self.stats["segments"] += 1

    def accept_alignment(
        self,
        read_id: str,
        chromosome: str,
        blocks: Iterable[Tuple[int, int]],
        strand: str = ".",
    ) -> None:
        for start, end in blocks:
            self.accept(ReadSegment(read_id, Interval(chromosome, start, end, strand)))

    def flush(self, read_id: str) -> Set[str]:
        self._check_open("flush reads")
        read = self._collector.flush(read_id)
        if read_id == self._current:
            self._current = None
        if read.is_empty:
            return set()
        if self.flush_policy == "contiguous":
            self._flushed.add(read_id)

        hits = self._assign(read, self.index, self.stranded)
        self._counter.record(hits)
        self.stats["reads"] += 1
        if hits:
            self.stats["reads_assigned"] += 1
        if self._on_assign is not None:
            self._on_assign(read_id, hits)
        return hits

    def finalize(self) -> Dict[str, int]:
        self._check_open("finalize")
        self.state = EngineState.FLUSHING
        try:
            for read_id in self._collector.pending():
                self.flush(read_id)
            counts = self._counter.finalize()
        finally:
            # terminal even when a flush fails; partial counts are never read back
            self.state = EngineState.FINALIZED
            self._flushed.clear()
        if self._logger:
            self._logger.info(
                f"Engine finalized: segments={self.stats['segments']:,}, reads={self.stats['reads']:,}, "
                f"assigned={self.stats['reads_assigned']:,}, regions={len(counts):,}"
            )
        return counts


def count_segments(
    regions: RegionIndex | Iterable[Region],
    segments: Iterable[ReadSegment],
    **options,
) -> Dict[str, int]:
    """Count an in-memory segment stream in one pass; options go to CountEngine."""
    engine = CountEngine(regions, **options)
    for seg in segments:
        engine.accept(seg)
    return engine.finalize()
