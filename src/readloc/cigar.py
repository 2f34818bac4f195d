from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple, Union

# Ops that move along the reference. D stays inside a block, N opens a gap.
_BLOCK_OPS = "M=XD"
_SKIP_OPS = "N"
_QUERY_ONLY_OPS = "ISHP"
# BAM numeric op codes, as found in (op, length) cigar tuples
_OP_CODES = "MIDNSHP=X"


def parse_cigar(cg: str) -> List[Tuple[int, str]]:
    num = ""
    out: List[Tuple[int, str]] = []
    for ch in cg:
        if ch.isdigit():
            num += ch
        else:
            if not num:
                raise ValueError(f"Bad CIGAR: {cg}")
            if ch not in _BLOCK_OPS + _SKIP_OPS + _QUERY_ONLY_OPS:
                raise ValueError(f"Unknown CIGAR op {ch!r} in {cg}")
            out.append((int(num), ch))
            num = ""
    if num:
        raise ValueError(f"Trailing length in CIGAR: {cg}")
    return out


def merge_blocks(blocks: Sequence[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Merge sorted (start, end) blocks that overlap or touch."""
    merged: List[Tuple[int, int]] = []
    for s, e in blocks:
        if merged and s <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], e))
        else:
            merged.append((s, e))
    return merged


def cigar_blocks(
    cigar: Union[str, Iterable[Tuple[Union[int, str], int]]],
    pos: int,
) -> List[Tuple[int, int]]:
    """
    Reference blocks covered by an alignment starting at 0-based pos.

    Accepts a CIGAR string ('50M200N50M') or pysam/bamnostic-style
    (op, length) tuples. Returns 0-based half-open (start, end) pairs; the
    read is only split where the CIGAR skips reference (N).
    """
    if isinstance(cigar, str):
        ops = [(op, ln) for ln, op in parse_cigar(cigar)]
    else:
        ops = [(_OP_CODES[op] if isinstance(op, int) else op, ln) for op, ln in cigar]

    blocks: List[Tuple[int, int]] = []
    ref = pos
    for op, ln in ops:
        if op in _BLOCK_OPS:
            if ln > 0:
                blocks.append((ref, ref + ln))
            ref += ln
        elif op in _SKIP_OPS:
            ref += ln
        elif op in _QUERY_ONLY_OPS:
            continue
        else:
            raise ValueError(f"Unhandled CIGAR op {op}")
    return merge_blocks(blocks)
