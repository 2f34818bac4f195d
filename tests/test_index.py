import pytest

from readloc.errors import DuplicateRegionId, InvalidRegion
from readloc.index import RegionIndex, merge_overlapping_regions
from readloc.readlocClasses import Interval, Region


def R(rid, chrom, start, end):
    return Region(rid, Interval(chrom, start, end))


def _brute(regions, iv):
    return {r.id for r in regions if r.interval.overlaps(iv)}


def test_query_overlapping_and_nested_regions_kept():
    regions = [R("gene", "chr1", 100, 1000), R("exon1", "chr1", 100, 200), R("exon2", "chr1", 500, 600)]
    idx = RegionIndex.build(regions)
    assert idx.query(Interval("chr1", 150, 160)) == {"gene", "exon1"}
    assert idx.query(Interval("chr1", 300, 310)) == {"gene"}
    assert idx.query(Interval("chr1", 1000, 1100)) == set()
    assert idx.query(Interval("chr2", 150, 160)) == set()


def test_query_matches_brute_force():
    # long region early in the list must still be found by later queries
    regions = [
        R("long", "chr1", 0, 10000),
        R("a", "chr1", 10, 20),
        R("b", "chr1", 15, 40),
        R("c", "chr1", 100, 150),
        R("d", "chr1", 149, 151),
        R("e", "chr1", 5000, 5001),
    ]
    idx = RegionIndex.build(regions)
    for start in range(0, 5100, 7):
        iv = Interval("chr1", start, start + 13)
        assert idx.query(iv) == _brute(regions, iv)


def test_invalid_region_rejected():
    with pytest.raises(InvalidRegion):
        RegionIndex.build([R("ok", "chr1", 0, 10), R("bad", "chr1", 10, 10)])
    with pytest.raises(InvalidRegion):
        RegionIndex.build([R("neg", "chr1", -5, 10)])
    with pytest.raises(InvalidRegion):
        RegionIndex.build([R("", "chr1", 0, 10)])


def test_duplicate_region_id_rejected():
    with pytest.raises(DuplicateRegionId):
        RegionIndex.build([R("A", "chr1", 0, 10), R("A", "chr2", 0, 10)])


def test_region_ids_in_natural_order():
    idx = RegionIndex.build([R("z", "chr10", 5, 6), R("y", "chr2", 9, 10), R("x", "chr2", 1, 2)])
    assert idx.region_ids() == ["x", "y", "z"]
    assert idx.chromosomes() == ["chr2", "chr10"]
    assert len(idx) == 3
    assert "y" in idx and "nope" not in idx
    assert idx.get("z").start == 5


def test_subset_keeps_only_requested_chromosomes():
    idx = RegionIndex.build([R("a", "chr1", 0, 10), R("b", "chr2", 0, 10)])
    sub = idx.subset(["chr2"])
    assert sub.region_ids() == ["b"]


def test_merge_overlapping_regions():
    merged = merge_overlapping_regions([
        R("A", "chr1", 100, 200),
        R("B", "chr1", 150, 250),
        R("C", "chr1", 250, 300),  # touches B only
        R("D", "chr2", 100, 200),
    ])
    assert [(r.id, r.start, r.end) for r in merged] == [
        ("A|B", 100, 250),
        ("C", 250, 300),
        ("D", 100, 200),
    ]


def test_build_does_not_merge_unless_asked():
    regions = [R("A", "chr1", 100, 200), R("B", "chr1", 150, 250)]
    assert RegionIndex.build(regions).region_ids() == ["A", "B"]
    assert RegionIndex.build(regions, merge_overlapping=True).region_ids() == ["A|B"]


def test_merged_id_clashing_with_existing_id_rejected():
    regions = [R("A", "chr1", 100, 200), R("B", "chr1", 150, 250), R("A|B", "chr2", 0, 10)]
    with pytest.raises(DuplicateRegionId, match="A\\|B"):
        RegionIndex.build(regions, merge_overlapping=True)


def test_stranded_query():
    idx = RegionIndex.build([
        Region("p", Interval("chr1", 0, 100, "+")),
        Region("m", Interval("chr1", 0, 100, "-")),
        Region("u", Interval("chr1", 0, 100)),
    ])
    assert idx.query(Interval("chr1", 10, 20, "+")) == {"p", "m", "u"}
    assert idx.query(Interval("chr1", 10, 20, "+"), stranded=True) == {"p", "u"}
    assert idx.query(Interval("chr1", 10, 20, "-"), stranded=True) == {"m", "u"}
    assert idx.query(Interval("chr1", 10, 20), stranded=True) == {"p", "m", "u"}


def test_merging_mixed_strands_gives_unknown_strand():
    merged = merge_overlapping_regions([
        Region("a", Interval("chr1", 0, 50, "+")),
        Region("b", Interval("chr1", 40, 90, "+")),
        Region("c", Interval("chr1", 200, 300, "+")),
        Region("d", Interval("chr1", 250, 350, "-")),
    ])
    assert [(r.id, r.strand) for r in merged] == [("a|b", "+"), ("c|d", ".")]
