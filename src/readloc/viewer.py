from __future__ import annotations
import bamnostic as bn
from pathlib import Path

from .assign import assign
from .bam import _extract_blocks, _get_read_name, expand_bam_patterns
from .bedio import load_regions
from .errors import ReadlocError
from .index import RegionIndex
from .readlocClasses import Interval, LogicalRead


def view_bam_blocks(bams: list[str], n: int = 10, regions: str | Path | None = None) -> int:
    """
    Print the first N mapped records from each BAM with their decoded
    reference blocks. With regions, also print the region ids the record
    alone would be credited to.
    Output is TSV: read_name, chr, blocks[, regions]
    """
    bam_paths = expand_bam_patterns(bams)
    if not bam_paths:
        print("[ERROR] No BAM files found.")
        return 1

    index = None
    if regions:
        try:
            index = RegionIndex.build(load_regions(regions))
        except (ReadlocError, FileNotFoundError) as e:
            print(f"[ERROR] Could not load regions: {e}")
            return 2

    for bam in bam_paths:
        try:
            bf = bn.AlignmentFile(bam, "rb")
        except Exception as e:
            print(f"[ERROR] Could not open {bam}: {e}")
            return 1

        print(f"== {bam} ==")

        try:
            printed = 0
            for aln in bf:
                if getattr(aln, "is_unmapped", False):
                    continue

                name = _get_read_name(aln) or "NA"
                rname = getattr(aln, "reference_name", "") or ""
                try:
                    blocks = _extract_blocks(aln)
                except ValueError as e:
                    print(f"{name}\t{rname}\t[bad CIGAR: {e}]")
                    printed += 1
                    if printed >= n:
                        break
                    continue
                blocks_s = ",".join(f"{s}-{e}" for s, e in blocks) or "-"

                line = f"{name}\t{rname}\t{blocks_s}"
                if index is not None:
                    read = LogicalRead(name, frozenset(Interval(rname, s, e) for s, e in blocks))
                    hits = sorted(assign(read, index))
                    line += "\t" + (",".join(hits) or "-")
                print(line)

                printed += 1
                if printed >= n:
                    break

            if printed == 0:
                print("[info] No mapped reads found.")
        finally:
            bf.close()

    return 0


def summarize_regions(path: str | Path, merge_overlapping: bool = False) -> int:
    """Validate a region set and print region counts per chromosome."""
    try:
        index = RegionIndex.build(load_regions(path), merge_overlapping=merge_overlapping)
    except (ReadlocError, FileNotFoundError) as e:
        print(f"[ERROR] {e}")
        return 2

    print(f"{len(index)} regions on {len(index.chromosomes())} chromosomes")
    for chr_ in index.chromosomes():
        lst = index.regions(chr_)
        span = sum(r.end - r.start for r in lst)
        print(f"{chr_}\t{len(lst)}\t{span}")
    return 0
