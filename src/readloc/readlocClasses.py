from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import FrozenSet, List, Tuple


# Half-open [start, end) on a named chromosome, 0-based like BED.
# strand is "+", "-" or "." (unknown); overlap tests ignore it.
@dataclass(frozen=True, order=True)
class Interval:
    chromosome: str
    start: int
    end: int
    strand: str = "."

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: Interval) -> bool:
        return (
            self.chromosome == other.chromosome
            and self.start < other.end
            and other.start < self.end
        )

    def overlap_length(self, other: Interval) -> int:
        """Number of bases shared with other (0 when they do not overlap)."""
        if self.chromosome != other.chromosome:
            return 0
        return max(0, min(self.end, other.end) - max(self.start, other.start))

    def __str__(self) -> str:
        return f"{self.chromosome}:{self.start}-{self.end}"

    def same_strand(self, other: Interval) -> bool:
        """False only when both strands are known and differ."""
        return self.strand == "." or other.strand == "." or self.strand == other.strand


@dataclass(frozen=True)
class Region:
    id: str
    interval: Interval

    @property
    def chromosome(self) -> str:
        return self.interval.chromosome

    @property
    def start(self) -> int:
        return self.interval.start

    @property
    def end(self) -> int:
        return self.interval.end

    @property
    def strand(self) -> str:
        return self.interval.strand


# One aligned block of one read
@dataclass(frozen=True)
class ReadSegment:
    read_id: str
    interval: Interval


@dataclass(frozen=True)
class LogicalRead:
    read_id: str
    segments: FrozenSet[Interval] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not self.segments

    def sorted_segments(self) -> List[Interval]:
        return sorted(self.segments)


_CHROM_RE = re.compile(r"^(?:chr)?(.*)$", re.IGNORECASE)
_CHROM_SPECIAL = {"X": 1, "Y": 2, "M": 3, "MT": 3}


def chrom_sort_key(name: str) -> Tuple[int, int, str]:
    """
    Natural chromosome order: chr1..chr22, then X, Y, M, then anything else
    alphabetically. Works with or without the 'chr' prefix.
    """
    core = _CHROM_RE.match(name).group(1)
    if core.isdigit():
        return (0, int(core), name)
    special = _CHROM_SPECIAL.get(core.upper())
    if special is not None:
        return (1, special, name)
    return (2, 0, name)
