from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from typing import Dict, Iterable, List, Optional, Set

from .errors import DuplicateRegionId, InvalidRegion
from .readlocClasses import Interval, Region, chrom_sort_key


def _validate_regions(regions: Iterable[Region]) -> List[Region]:
    seen: Set[str] = set()
    out: List[Region] = []
    for r in regions:
        if not r.id:
            raise InvalidRegion(f"Region with empty id at {r.interval}")
        if not r.chromosome:
            raise InvalidRegion(f"Region {r.id!r} has an empty chromosome name")
        if r.start < 0 or r.start >= r.end:
            raise InvalidRegion(
                f"Region {r.id!r} has an invalid interval {r.chromosome}:{r.start}-{r.end} "
                f"(need 0 <= start < end)"
            )
        if r.id in seen:
            raise DuplicateRegionId(f"Region id {r.id!r} is defined more than once")
        seen.add(r.id)
        out.append(r)
    return out


def _region_order(r: Region):
    return (r.start, r.end, r.id)


def merge_overlapping_regions(regions: Iterable[Region]) -> List[Region]:
    """
    Collapse regions on the same chromosome whose intervals overlap into one
    region covering their union. The merged id joins member ids with '|'.
    Regions that only touch (end == next start) stay separate.
    """
    by_chr: Dict[str, List[Region]] = {}
    for r in regions:
        by_chr.setdefault(r.chromosome, []).append(r)

    merged: List[Region] = []
    for chr_ in sorted(by_chr, key=chrom_sort_key):
        group: List[Region] = []
        group_end = -1
        for r in sorted(by_chr[chr_], key=_region_order):
            if group and r.start < group_end:
                group.append(r)
                group_end = max(group_end, r.end)
                continue
            if group:
                merged.append(_merge_group(group, group_end))
            group = [r]
            group_end = r.end
        if group:
            merged.append(_merge_group(group, group_end))
    return merged


def _merge_group(group: List[Region], end: int) -> Region:
    if len(group) == 1:
        return group[0]
    first = group[0]
    strands = {r.strand for r in group}
    return Region(
        id="|".join(r.id for r in group),
        interval=Interval(first.chromosome, first.start, end, strands.pop() if len(strands) == 1 else "."),
    )


class RegionIndex:
    """
    Per-chromosome sorted region lists answering "which regions overlap this
    interval". Overlapping region definitions are kept as separate entries so
    nested features (gene and exon) each get credit.
    """

    def __init__(self) -> None:
        self._by_chr: Dict[str, List[Region]] = {}
        self._starts: Dict[str, List[int]] = {}
        # running maximum of region ends, non-decreasing along the sorted list
        self._max_ends: Dict[str, List[int]] = {}
        self._by_id: Dict[str, Region] = {}

    @classmethod
    def build(
        cls,
        regions: Iterable[Region],
        *,
        merge_overlapping: bool = False,
        logger: logging.Logger | None = None,
    ) -> RegionIndex:
        checked = _validate_regions(regions)
        if merge_overlapping:
            n_before = len(checked)
            # a merged id like "A|B" may clash with an existing region id
            checked = _validate_regions(merge_overlapping_regions(checked))
            if logger:
                logger.info(f"Merged overlapping regions: {n_before} -> {len(checked)}")

        idx = cls()
        for r in checked:
            idx._by_chr.setdefault(r.chromosome, []).append(r)
            idx._by_id[r.id] = r
        for chr_, lst in idx._by_chr.items():
            lst.sort(key=_region_order)
            idx._starts[chr_] = [r.start for r in lst]
            running = []
            top = 0
            for r in lst:
                top = max(top, r.end)
                running.append(top)
            idx._max_ends[chr_] = running

        if logger:
            logger.info(f"Region index built: {len(idx)} regions on {len(idx._by_chr)} chromosomes")
            if logger.isEnabledFor(logging.DEBUG):
                for chr_ in idx.chromosomes():
                    logger.debug(f"  chr={chr_!r}: {len(idx._by_chr[chr_])} regions")
        return idx

    def query_regions(self, interval: Interval, stranded: bool = False) -> List[Region]:
        """
        Regions overlapping interval, in index order. With stranded, regions on
        the opposite strand are dropped; an unknown strand (".") matches both.
        """
        lst = self._by_chr.get(interval.chromosome)
        if not lst or interval.start >= interval.end:
            return []
        # first region whose (running) end could reach past interval.start
        lo = bisect_right(self._max_ends[interval.chromosome], interval.start)
        # regions starting at or after interval.end cannot overlap
        hi = bisect_left(self._starts[interval.chromosome], interval.end)
        hits = [r for r in lst[lo:hi] if r.end > interval.start]
        if stranded:
            hits = [r for r in hits if r.interval.same_strand(interval)]
        return hits

    def query(self, interval: Interval, stranded: bool = False) -> Set[str]:
        return {r.id for r in self.query_regions(interval, stranded)}

    def chromosomes(self) -> List[str]:
        return sorted(self._by_chr, key=chrom_sort_key)

    def regions(self, chromosome: str | None = None) -> List[Region]:
        if chromosome is not None:
            return list(self._by_chr.get(chromosome, []))
        out: List[Region] = []
        for chr_ in self.chromosomes():
            out.extend(self._by_chr[chr_])
        return out

    def region_ids(self) -> List[str]:
        return [r.id for r in self.regions()]

    def get(self, region_id: str) -> Optional[Region]:
        return self._by_id.get(region_id)

    def subset(self, chromosomes: Iterable[str]) -> RegionIndex:
        keep = set(chromosomes)
        return RegionIndex.build(r for r in self.regions() if r.chromosome in keep)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, region_id: object) -> bool:
        return region_id in self._by_id
