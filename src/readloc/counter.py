from __future__ import annotations

from typing import Dict, Iterable, Mapping

from .errors import EngineClosed


class RegionCounter:
    """
    Distinct-read count per region. Every known region starts at 0 so the
    final mapping always lists it, zero or not.
    """

    def __init__(self, region_ids: Iterable[str]) -> None:
        self._counts: Dict[str, int] = dict.fromkeys(region_ids, 0)
        self._finalized = False
        self.reads_recorded = 0
        self.reads_assigned = 0

    def _check_open(self) -> None:
        if self._finalized:
            raise EngineClosed("Counter already finalized")

    def record(self, region_ids: Iterable[str]) -> None:
        """Add one read: +1 to each distinct region id, never more."""
        self._check_open()
        ids = set(region_ids)
        for rid in ids:
            if rid not in self._counts:
                raise KeyError(f"Unknown region id: {rid!r}")
        for rid in ids:
            self._counts[rid] += 1
        self.reads_recorded += 1
        if ids:
            self.reads_assigned += 1

    def merge(self, partial: Mapping[str, int]) -> None:
        self._check_open()
        for rid, n in partial.items():
            self._counts[rid] = self._counts.get(rid, 0) + n

    def finalize(self) -> Dict[str, int]:
        self._check_open()
        self._finalized = True
        return dict(self._counts)

    @property
    def finalized(self) -> bool:
        return self._finalized


def merge_counts(*partials: Mapping[str, int]) -> Dict[str, int]:
    """Sum per-region counts from independent shards (order does not matter)."""
    out: Dict[str, int] = {}
    for part in partials:
        for rid, n in part.items():
            out[rid] = out.get(rid, 0) + n
    return out
