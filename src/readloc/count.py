from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple
import logging
import sys
import traceback

from .bam import _get_memory_usage, expand_bam_patterns, iter_read_segments, resolve_flush_policy
from .bedio import load_regions
from .engine import CountEngine
from .errors import ReadlocError
from .index import RegionIndex
from .shard import count_by_chromosome


def _make_logger(level: str) -> logging.Logger:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger("readloc.count")
    # Configure once
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    logger.setLevel(lvl)
    return logger


def count_one_bam(
    bam_path: str | Path,
    index: RegionIndex,
    *,
    assign_mode: str = "all",
    flush: str = "auto",
    stranded: bool = False,
    max_nh: int = 0,
    workers: int = 1,
    assignments_path: str | Path | None = None,
    logger: logging.Logger | None = None,
    log_reads: int = 0,
) -> Tuple[Dict[str, int], Dict[str, int]]:
    """
    Count distinct reads per region for a single BAM.
    Returns (region_counts, stats); region_counts lists every region of the index.
    """
    stats: Dict[str, int] = {}
    segments = iter_read_segments(bam_path, max_nh=max_nh, stats=stats, logger=logger, log_reads=log_reads)

    # Sharded path: the whole BAM is partitioned by chromosome in memory
    if workers > 1:
        if assignments_path is not None:
            raise ValueError("Per-read assignment output is not available with workers > 1")
        if logger:
            logger.info(f"Counting (sharded, workers={workers}) in {bam_path}")
        counts = count_by_chromosome(
            index, segments, workers=workers, assign_mode=assign_mode, stranded=stranded, logger=logger
        )
        return counts, stats

    policy = resolve_flush_policy(flush, bam_path, logger=logger)
    if logger:
        logger.info(f"Counting ({policy} flush, assign={assign_mode}) in {bam_path}")

    out_fh = None
    on_assign = None
    if assignments_path is not None:
        ap = Path(assignments_path)
        ap.parent.mkdir(parents=True, exist_ok=True)
        out_fh = open(ap, "w", encoding="utf-8")

        def on_assign(read_id: str, region_ids: Set[str]) -> None:
            for rid in sorted(region_ids):
                out_fh.write(f"{read_id}\t{rid}\n")

    try:
        engine = CountEngine(
            index,
            assign_mode=assign_mode,
            flush=policy,
            stranded=stranded,
            on_assign=on_assign,
            logger=logger,
        )
        for seg in segments:
            engine.accept(seg)
        counts = engine.finalize()
    finally:
        if out_fh is not None:
            out_fh.close()

    stats.update(engine.stats)
    if logger:
        logger.info(
            f"Done {bam_path}: aligned={stats['alignments']:,}, reads={stats['reads']:,}, "
            f"reads_assigned={stats['reads_assigned']:,}"
        )
        logger.debug(
            f"Skipped records in {bam_path}: unmapped={stats['skipped_unmapped']}, "
            f"nh_too_big={stats['skipped_nh']}, no_blocks={stats['skipped_no_blocks']}, "
            f"no_name={stats['skipped_no_name']}"
        )
    return counts, stats


def write_count_matrix(
    out_path: str | Path,
    region_ids: List[str],
    sample_names: List[str],
    per_sample_counts: List[Dict[str, int]],
) -> Path:
    """TSV with one row per region (zeros included) and one column per sample."""
    outp = Path(out_path)
    outp.parent.mkdir(parents=True, exist_ok=True)
    with open(outp, "w", encoding="utf-8") as fh:
        fh.write("region\t" + "\t".join(sample_names) + "\n")
        for rid in region_ids:
            fh.write(rid + "\t" + "\t".join(str(mc.get(rid, 0)) for mc in per_sample_counts) + "\n")
    return outp


def count_matrix(
    bam_paths: List[str],
    region_path: str | Path,
    out_path: str | Path,
    *,
    assign_mode: str = "all",
    flush: str = "auto",   # auto | qname | end
    stranded: bool = False,
    merge_overlapping: bool = False,
    max_nh: int = 0,
    workers: int = 1,
    assignments_dir: str | Path | None = None,
    log_level: str = "INFO",
    log_reads: int = 0,
) -> int:
    """
    Build a matrix with rows = regions, columns = samples (one per BAM).
    Each read adds at most 1 to any region, however many of its blocks land there.
    """
    logger = _make_logger(log_level)
    logger.debug(f"Python version: {sys.version}")
    logger.debug(f"Starting memory: {_get_memory_usage():.1f} MB")

    # Regions are loaded and validated once; any bad entry rejects the whole set
    try:
        index = RegionIndex.build(
            load_regions(region_path, logger=logger),
            merge_overlapping=merge_overlapping,
            logger=logger,
        )
    except (ReadlocError, FileNotFoundError) as e:
        logger.error(f"Could not load regions from {region_path}: {e}")
        return 2

    bam_list = expand_bam_patterns(bam_paths, logger=logger)
    if not bam_list:
        logger.error("No BAMs found.")
        return 1

    logger.info(
        f"{len(bam_list)} BAM(s) to process; assign={assign_mode}, flush={flush}, stranded={stranded}, "
        f"max_nh={max_nh}, workers={workers}"
    )
    sample_names = [Path(b).stem for b in bam_list]
    per_sample_counts: List[Dict[str, int]] = []

    for bamf, b in enumerate(bam_list, 1):
        logger.info(f"Processing BAM {bamf}/{len(bam_list)}: {b}")
        assignments_path: Optional[Path] = None
        if assignments_dir is not None:
            assignments_path = Path(assignments_dir) / f"{Path(b).stem}.reloc.tsv"
        try:
            mc, _stats = count_one_bam(
                b,
                index,
                assign_mode=assign_mode,
                flush=flush,
                stranded=stranded,
                max_nh=max_nh,
                workers=workers,
                assignments_path=assignments_path,
                logger=logger,
                log_reads=log_reads,
            )
        except Exception as e:
            logger.error(f"{b}: {e}")
            logger.debug("Traceback after Exception on count_one_bam:\n" + traceback.format_exc())
            return 1
        per_sample_counts.append(mc)
        if assignments_path is not None:
            logger.info(f"Wrote per-read assignments to {assignments_path}")
        logger.info(f"Current memory: {_get_memory_usage():.1f} MB")

    region_ids = index.region_ids()
    if not any(n for mc in per_sample_counts for n in mc.values()):
        logger.warning(
            "No reads overlapped any region. Common causes: contig name mismatch (chr1 vs 1) "
            "or regions from a different genome build."
        )

    outp = write_count_matrix(out_path, region_ids, sample_names, per_sample_counts)
    logger.info(f"Wrote matrix to {outp} with {len(region_ids)} regions and {len(sample_names)} samples")
    return 0
