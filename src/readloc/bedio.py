from __future__ import annotations
from pathlib import Path
import gzip
import logging
from typing import List, TextIO

from .errors import InvalidRegion
from .readlocClasses import Interval, Region


def _open_text_auto(path: str | Path, mode: str = "rt") -> TextIO:
    p = Path(path)
    if p.suffix.lower() == ".gz":
        return gzip.open(p, mode, encoding="utf-8", errors="replace")
    return open(p, mode, encoding="utf-8", errors="replace")


def _is_bed(p: Path) -> bool:
    name = p.name.lower()
    return name.endswith(".bed") or name.endswith(".bed.gz")


def discover_bed_files(path: str | Path) -> List[Path]:
    """
    A single BED file, or every *.bed / *.bed.gz directly inside a directory
    (sorted by name).
    """
    p = Path(path)
    if p.is_file():
        return [p]
    if p.is_dir():
        found = sorted(f for f in p.iterdir() if f.is_file() and _is_bed(f))
        if not found:
            raise FileNotFoundError(f"No .bed files in directory: {p}")
        return found
    raise FileNotFoundError(f"Region path does not exist: {p}")


def read_bed_regions(path: str | Path) -> List[Region]:
    """
    Read regions from a BED3+ file (plain or .gz). Column 4 is the region id;
    when it is missing or '.', the id is 'chrom:start-end'. Column 6 is the
    strand (anything but + or - is kept as '.').
    Any unparseable data line rejects the file.
    """
    regions: List[Region] = []
    with _open_text_auto(path, "rt") as fh:
        for lineno, raw in enumerate(fh, 1):
            if not raw.strip():
                continue
            if raw.startswith(("#", "track", "browser")):
                continue

            cols = raw.rstrip("\n").split("\t")
            if len(cols) < 3:
                raise InvalidRegion(f"{path}:{lineno}: expected at least 3 tab-separated columns")
            chrom, start_s, end_s = cols[0], cols[1], cols[2]
            try:
                start = int(start_s)
                end = int(end_s)
            except ValueError:
                raise InvalidRegion(f"{path}:{lineno}: non-integer coordinates {start_s!r}, {end_s!r}") from None

            name = cols[3].strip() if len(cols) > 3 else ""
            if not name or name == ".":
                name = f"{chrom}:{start}-{end}"
            strand = cols[5].strip() if len(cols) > 5 else "."
            if strand not in ("+", "-"):
                strand = "."
            regions.append(Region(id=name, interval=Interval(chrom, start, end, strand)))
    return regions


def load_regions(path: str | Path, logger: logging.Logger | None = None) -> List[Region]:
    regions: List[Region] = []
    for bed in discover_bed_files(path):
        part = read_bed_regions(bed)
        if logger:
            logger.info(f"Loaded {len(part):,} regions from {bed.name}")
        regions.extend(part)
    return regions
