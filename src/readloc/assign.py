from __future__ import annotations

from typing import Callable, Dict, Set

from .cigar import merge_blocks
from .index import RegionIndex
from .readlocClasses import LogicalRead, Region, chrom_sort_key


def assign(read: LogicalRead, index: RegionIndex, stranded: bool = False) -> Set[str]:
    """
    Credit every region the read overlaps with at least one of its blocks.

    The per-read set union is what keeps a spliced read from being counted
    once per block: two blocks inside region R still give {R}, one block in R
    and one in S give {R, S}.
    """
    hits: Set[str] = set()
    for seg in read.segments:
        hits |= index.query(seg, stranded)
    return hits


def overlap_bases(read: LogicalRead, region: Region, stranded: bool = False) -> int:
    """
    Distinct read bases inside region. Blocks of one read may overlap each
    other (mates, several records under one name), so the clipped blocks are
    merged before summing.
    """
    clipped = []
    for seg in read.sorted_segments():
        if seg.chromosome != region.chromosome:
            continue
        if stranded and not seg.same_strand(region.interval):
            continue
        s, e = max(seg.start, region.start), min(seg.end, region.end)
        if s < e:
            clipped.append((s, e))
    return sum(e - s for s, e in merge_blocks(sorted(clipped)))


def assign_best(read: LogicalRead, index: RegionIndex, stranded: bool = False) -> Set[str]:
    """
    Credit only the region covering the most read bases (at most one id).
    Ties go to the region that comes first in index order.
    """
    best: Region | None = None
    best_cov = 0
    seen: Set[str] = set()
    for seg in read.sorted_segments():
        for region in index.query_regions(seg, stranded):
            if region.id in seen:
                continue
            seen.add(region.id)
            cov = overlap_bases(read, region, stranded)
            if cov > best_cov or (cov == best_cov and best is not None and _before(region, best)):
                best, best_cov = region, cov
    return {best.id} if best is not None else set()


def _before(a: Region, b: Region) -> bool:
    return _key(a) < _key(b)


def _key(r: Region):
    return (chrom_sort_key(r.chromosome), r.start, r.end, r.id)


ASSIGNERS: Dict[str, Callable[..., Set[str]]] = {
    "all": assign,
    "best": assign_best,
}
