from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, Iterable, List

from .counter import merge_counts
from .engine import CountEngine
from .index import RegionIndex
from .readlocClasses import ReadSegment, Region


def partition_by_chromosome(segments: Iterable[ReadSegment]) -> Dict[str, List[ReadSegment]]:
    parts: Dict[str, List[ReadSegment]] = {}
    for seg in segments:
        parts.setdefault(seg.interval.chromosome, []).append(seg)
    return parts


def _count_shard(index: RegionIndex, segments: List[ReadSegment], stranded: bool = False) -> Dict[str, int]:
    # A shard only ever sees its own chromosome, so the end-of-stream flush is
    # always safe regardless of input order.
    engine = CountEngine(index, assign_mode="all", flush="end", stranded=stranded)
    for seg in segments:
        engine.accept(seg)
    return engine.finalize()


def count_by_chromosome(
    regions: RegionIndex | Iterable[Region],
    segments: Iterable[ReadSegment],
    *,
    workers: int = 1,
    assign_mode: str = "all",
    stranded: bool = False,
    merge_overlapping: bool = False,
    logger: logging.Logger | None = None,
) -> Dict[str, int]:
    """
    Shard regions and segments by chromosome, count each shard on its own and
    add the partial counts together.

    Regions never span chromosomes, so a read split across chromosomes
    (chimeric) still credits each region at most once. The best-region mode
    compares regions across the whole read and cannot be sharded.
    """
    if assign_mode != "all":
        raise ValueError(f"assign_mode={assign_mode!r} cannot be sharded by chromosome; use 'all'")

    if isinstance(regions, RegionIndex):
        index = regions
    else:
        index = RegionIndex.build(regions, merge_overlapping=merge_overlapping, logger=logger)

    parts = partition_by_chromosome(segments)
    known = set(index.chromosomes())
    shards = {chr_: index.subset([chr_]) for chr_ in parts if chr_ in known}
    if logger:
        skipped = sorted(set(parts) - set(shards))
        logger.info(f"Counting {len(shards)} chromosome shard(s) with workers={workers}")
        if skipped:
            logger.debug(f"Chromosomes with segments but no regions (first 20): {skipped[:20]}")

    partials: List[Dict[str, int]] = [dict.fromkeys(index.region_ids(), 0)]
    if workers <= 1 or len(shards) <= 1:
        for chr_, sub in shards.items():
            partials.append(_count_shard(sub, parts[chr_], stranded))
    else:
        with ThreadPoolExecutor(max_workers=min(workers, len(shards))) as ex:
            futures = {ex.submit(_count_shard, sub, parts[chr_], stranded): chr_ for chr_, sub in shards.items()}
            for f in as_completed(futures):
                chr_ = futures[f]
                try:
                    partials.append(f.result())
                except Exception as e:
                    if logger:
                        logger.error(f"Shard {chr_} failed: {e}")
                    raise
                if logger:
                    logger.debug(f"Shard {chr_} reduced")

    merged = merge_counts(*partials)
    # keep index order in the final mapping
    return {rid: merged[rid] for rid in index.region_ids()}
