from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple
import glob
import logging
import os

import bamnostic as bn
import psutil

from .cigar import cigar_blocks
from .readlocClasses import Interval, ReadSegment


def _get_read_name(aln) -> str:
    # Different libs/files expose different attributes
    for attr in ("query_name", "qname", "read_name"):
        v = getattr(aln, attr, None)
        if v:
            return v
    return ""


def _get_memory_usage() -> float:
    process = psutil.Process(os.getpid())
    return process.memory_info().rss / 1024 / 1024  # Current memory usage in MB


def _get_nh(aln) -> Optional[int]:
    try:
        nh = aln.opt("NH")
    except (KeyError, AttributeError):
        return None
    return nh if isinstance(nh, int) else None


def _extract_blocks(aln) -> List[Tuple[int, int]]:
    """Aligned reference blocks of one record, 0-based half-open."""
    # bamnostic uses 'pos' (0-based) instead of 'reference_start'
    pos = getattr(aln, "pos", 0) or 0
    cigar = getattr(aln, "cigarstring", None)
    if cigar and cigar != "*":
        return cigar_blocks(cigar, pos)
    tuples = getattr(aln, "cigar", None)
    if tuples and not isinstance(tuples, str):
        return cigar_blocks(tuples, pos)
    return []


def expand_bam_patterns(bams: List[str], logger: logging.Logger | None = None) -> List[str]:
    """Expand glob patterns (sample*.bam); keep order; de-dupe."""
    seen = set()
    out: List[str] = []
    for pat in bams:
        matches = glob.glob(pat) if any(ch in pat for ch in "*?[]") else ([pat] if os.path.exists(pat) else [])
        for m in sorted(matches):
            if m not in seen:
                seen.add(m)
                out.append(m)
        if not matches:
            if logger:
                logger.warning(f"No BAMs matched: {pat}")
            else:
                print(f"[WARNING] No BAMs matched: {pat}")
    return out


def _header_text(bam) -> str:
    # bamnostic exposes the raw SAM header as 'text'; some versions also give a parsed dict
    for attr in ("text", "header"):
        h = getattr(bam, attr, None)
        if isinstance(h, bytes):
            h = h.decode("utf-8", errors="replace")
        if isinstance(h, str) and h:
            return h
        if isinstance(h, dict) and h.get("HD"):
            hd = h["HD"][0] if isinstance(h["HD"], list) else h["HD"]
            return "@HD\t" + "\t".join(f"{k}:{v}" for k, v in hd.items())
    return ""


def header_sort_order(bam_path: str | Path) -> Tuple[Optional[str], Optional[str]]:
    """(SO, GO) from the @HD header line; None when absent."""
    with bn.AlignmentFile(str(bam_path), "rb") as bam:
        text = _header_text(bam)
    for line in text.splitlines():
        if not line.startswith("@HD"):
            continue
        fields = dict(f.split(":", 1) for f in line.split("\t")[1:] if ":" in f)
        return fields.get("SO"), fields.get("GO")
    return None, None


def declares_name_grouped(bam_path: str | Path) -> bool:
    so, go = header_sort_order(bam_path)
    return so == "queryname" or go == "query"


def is_qname_sorted(bam_path: str | Path, sample: int = 2000) -> bool:
    """
    Heuristic: all records of a read are contiguous within the first N records.
    Name-sorted and name-collated BAMs both pass; coordinate-sorted spliced or
    paired data usually does not.
    """
    seen = set()
    last: Optional[str] = None
    checked = 0
    with bn.AlignmentFile(str(bam_path), "rb") as bam:
        for aln in bam:
            qn = _get_read_name(aln)
            if qn != last:
                if qn in seen:
                    return False
                seen.add(qn)
                last = qn
            checked += 1
            if checked >= sample:
                break
    return True


def resolve_flush_policy(mode: str, bam_path: str | Path, logger: logging.Logger | None = None) -> str:
    """
    Map the command-line flush mode to an engine flush policy:
      auto   contiguous only when the header declares SO:queryname or GO:query
             and the first records agree; otherwise end
      qname  contiguous; the first records must look name-grouped, and the
             engine stops with ReadNotContiguous if a flushed read returns
      end    hold all reads until the end of the file
    """
    if mode == "end":
        return "end"
    if mode == "qname":
        if not is_qname_sorted(bam_path):
            raise RuntimeError(
                "BAM is not name-sorted (QNAME). "
                "Use --flush end or sort with: samtools sort -n -o namesorted.bam input.bam"
            )
        return "contiguous"
    if mode == "auto":
        # a sampled prefix says nothing about records further down the file
        grouped = declares_name_grouped(bam_path) and is_qname_sorted(bam_path)
        policy = "contiguous" if grouped else "end"
        if logger:
            logger.info(f"{bam_path}: flush policy auto -> {policy}")
        return policy
    raise ValueError(f"Unknown flush mode: {mode}")


def iter_read_segments(
    bam_path: str | Path,
    *,
    max_nh: int = 0,
    stats: Dict[str, int] | None = None,
    logger: logging.Logger | None = None,
    log_reads: int = 0,
) -> Iterator[ReadSegment]:
    """
    Stream a BAM and yield one ReadSegment per aligned block, stranded by
    the record's orientation.

    Skips unmapped records, records without reference or blocks, and records
    whose NH tag exceeds max_nh (when max_nh > 0). Counters for what was
    skipped go into stats.
    """
    if stats is None:
        stats = {}
    for key in ("alignments", "skipped_unmapped", "skipped_nh", "skipped_no_blocks", "skipped_no_name"):
        stats.setdefault(key, 0)

    progress_every = 100000
    reads_logged = 0
    with bn.AlignmentFile(str(bam_path), "rb") as bam:
        for aln in bam:
            if getattr(aln, "is_unmapped", False):
                stats["skipped_unmapped"] += 1
                continue
            stats["alignments"] += 1

            if logger and stats["alignments"] % progress_every == 0:
                logger.info(
                    f"Processed {stats['alignments']:,} alignments... (Memory: {_get_memory_usage():.1f} MB)"
                )

            chr_ = getattr(aln, "reference_name", None)
            if not chr_:
                stats["skipped_no_blocks"] += 1
                continue

            if max_nh > 0:
                nh = _get_nh(aln)
                if nh is not None and nh > max_nh:
                    stats["skipped_nh"] += 1
                    continue

            blocks = _extract_blocks(aln)
            if not blocks:
                stats["skipped_no_blocks"] += 1
                continue

            qn = _get_read_name(aln)
            if not qn:
                stats["skipped_no_name"] += 1
                continue
            if logger and logger.isEnabledFor(logging.DEBUG) and reads_logged < log_reads:
                logger.debug(f"{qn}: chr={chr_!r}, blocks={blocks}")
                reads_logged += 1

            strand = "-" if getattr(aln, "is_reverse", False) else "+"
            for start, end in blocks:
                yield ReadSegment(qn, Interval(chr_, start, end, strand))
