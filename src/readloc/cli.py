import argparse

from .viewer import view_bam_blocks, summarize_regions
from .count import count_matrix


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Sanity checking of BAM files and their decoded blocks
    if args.cmd in ["view", "head"]:
        return view_bam_blocks(args.bams, n=args.num, regions=args.regions)

    # Validate a region set before a long run
    elif args.cmd == "regions":
        return summarize_regions(args.path, merge_overlapping=args.merge_overlapping)

    # Count reads per region
    elif args.cmd == "count":
        if args.workers > 1 and args.assign != "all":
            parser.error("--workers > 1 requires --assign all")
        if args.workers > 1 and args.assignments_dir:
            parser.error("--assignments-dir cannot be combined with --workers > 1")
        return count_matrix(
            bam_paths=args.bams,
            region_path=args.regions,
            out_path=args.out,
            assign_mode=args.assign,
            flush=args.flush,
            stranded=args.stranded,
            merge_overlapping=args.merge_overlapping,
            max_nh=args.max_nh,
            workers=args.workers,
            assignments_dir=args.assignments_dir,
            log_level=args.log_level,
            log_reads=args.log_reads,
        )
    else:
        parser.error("Unknown command")

    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="readloc",
        description="Count reads per genomic region, once per read, with bamnostic."
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    # Sanity checking of BAM files
    t = sub.add_parser(
        "view",
        aliases=["head"],
        help="Print first N mapped records from each BAM with their aligned blocks."
    )
    t.add_argument(
        "bams",
        nargs="+",
        help="One or more BAM files or glob patterns."
    )
    t.add_argument(
        "-n", "--num",
        type=int,
        default=10,
        help="Number of records per BAM."
    )
    t.add_argument(
        "-r", "--regions",
        default=None,
        help="Optional BED file or directory of BED files; prints the regions each record overlaps."
    )

    # Region set validation
    r = sub.add_parser(
        "regions",
        help="Load and validate a BED file or directory of BED files; print a per-chromosome summary."
    )
    r.add_argument(
        "path",
        help="BED file (.bed / .bed.gz) or directory of BED files."
    )
    r.add_argument(
        "--merge-overlapping",
        dest="merge_overlapping",
        action="store_true",
        help="Merge overlapping regions on the same chromosome before summarizing."
    )

    # count (matrix over multiple BAMs)
    c = sub.add_parser(
        "count",
        help="Count distinct reads per region across one or more BAMs; produces an output matrix."
    )
    c.add_argument(
        "bams",
        nargs="+",
        help="One or more BAM files or glob patterns (e.g., sample*.bam)."
    )
    c.add_argument(
        "-r", "--regions",
        required=True,
        help="BED file or directory of BED files (column 4 = region id)."
    )
    c.add_argument(
        "-o", "--out",
        required=True,
        help="Output TSV matrix path."
    )
    c.add_argument(
        "--assign",
        choices=["all", "best"],
        default="all",
        help="'all' (default) credits every region a read overlaps; 'best' credits only the region "
             "covering most of the read's aligned bases."
    )
    c.add_argument(
        "--flush",
        choices=["auto", "qname", "end"],
        default="auto",
        help="When a read is complete: 'qname' expects name-sorted BAMs and flushes on name change; "
             "'end' holds all reads until end of file; 'auto' picks qname only when the header declares SO:queryname or GO:query, else end."
    )
    c.add_argument(
        "--stranded",
        action="store_true",
        help="Only credit regions on the read's strand (BED column 6; regions without a strand match both)."
    )
    c.add_argument(
        "--merge-overlapping",
        dest="merge_overlapping",
        action="store_true",
        help="Merge overlapping regions on the same chromosome into one region (ids joined with '|')."
    )
    c.add_argument(
        "--max-nh",
        type=int,
        default=0,
        help="Skip alignments with NH greater than this (default 0 = no limit)."
    )
    c.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Count chromosomes in parallel shards with this many threads (default 1)."
    )
    c.add_argument(
        "--assignments-dir",
        dest="assignments_dir",
        default=None,
        help="Optional directory for per-read assignments (<sample>.reloc.tsv)."
    )
    # Debugging assistance
    c.add_argument(
        "--log-level",
        default="INFO",
        choices=["ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging verbosity (default: INFO)."
    )
    c.add_argument(
        "--log-reads",
        type=int,
        default=0,
        help="When DEBUG, log decoded blocks for the first N records per BAM (default: 0)."
    )
    return p

if __name__ == "__main__":
    raise SystemExit(main())
