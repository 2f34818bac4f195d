from readloc import cli
from conftest import FakeAln


def _write_regions(tmp_path):
    rdir = tmp_path / "regions"
    rdir.mkdir()
    (rdir / "features.bed").write_text(
        "chr1\t100\t200\tA\n"
        "chr1\t150\t250\tB\n"
        "chr1\t1000\t1100\tUNUSED\n"
    )
    return rdir


def _read_matrix(path):
    lines = path.read_text().splitlines()
    header = lines[0].split("\t")
    rows = {ln.split("\t")[0]: ln.split("\t")[1:] for ln in lines[1:]}
    return header, rows


def test_parser_defaults():
    args = cli.build_parser().parse_args(["count", "x.bam", "--regions", "r/", "--out", "o.tsv"])
    assert args.assign == "all"
    assert args.flush == "auto"
    assert args.max_nh == 0
    assert args.workers == 1
    assert not args.merge_overlapping


def test_count_end_to_end(tmp_path, fake_bams):
    rdir = _write_regions(tmp_path)
    bam1 = tmp_path / "sample1.bam"
    bam1.write_bytes(b"")
    # r1: spliced, both blocks in A, second also in B; r2 misses everything
    fake_bams[str(bam1)] = [
        FakeAln("r1", "chr1", 120, "20M40N10M"),
        FakeAln("r2", "chr1", 300, "10M"),
        FakeAln("r3", "chr1", 110, "5M"),
        FakeAln("r3", "chr1", 110, "5M"),
    ]
    out = tmp_path / "out" / "counts.tsv"
    adir = tmp_path / "assign"

    rc = cli.main([
        "count", str(bam1), "--regions", str(rdir), "--out", str(out),
        "--assignments-dir", str(adir), "--log-level", "ERROR",
    ])
    assert rc == 0

    header, rows = _read_matrix(out)
    assert header == ["region", "sample1"]
    assert rows == {"A": ["2"], "B": ["1"], "UNUSED": ["0"]}

    lines = (adir / "sample1.reloc.tsv").read_text().splitlines()
    assert lines == ["r1\tA", "r1\tB", "r3\tA"]


def test_count_sharded_matches(tmp_path, fake_bams):
    rdir = _write_regions(tmp_path)
    bam1 = tmp_path / "s.bam"
    bam1.write_bytes(b"")
    fake_bams[str(bam1)] = [
        FakeAln("r1", "chr1", 120, "20M40N10M"),
        FakeAln("r9", "chr2", 120, "20M"),
    ]
    out = tmp_path / "counts.tsv"
    rc = cli.main(["count", str(bam1), "-r", str(rdir), "-o", str(out), "--workers", "2", "--log-level", "ERROR"])
    assert rc == 0
    _, rows = _read_matrix(out)
    assert rows == {"A": ["1"], "B": ["1"], "UNUSED": ["0"]}


def test_count_rejects_duplicate_regions(tmp_path, fake_bams):
    rdir = tmp_path / "regions"
    rdir.mkdir()
    (rdir / "dup.bed").write_text("chr1\t0\t10\tA\nchr2\t0\t10\tA\n")
    rc = cli.main(["count", "x.bam", "-r", str(rdir), "-o", str(tmp_path / "o.tsv"), "--log-level", "ERROR"])
    assert rc == 2


def test_count_no_bams(tmp_path):
    rdir = _write_regions(tmp_path)
    rc = cli.main(["count", str(tmp_path / "none*.bam"), "-r", str(rdir), "-o", str(tmp_path / "o.tsv"),
                   "--log-level", "ERROR"])
    assert rc == 1


def test_regions_and_view_commands(tmp_path, fake_bams, capsys):
    rdir = _write_regions(tmp_path)
    assert cli.main(["regions", str(rdir)]) == 0
    assert "3 regions on 1 chromosomes" in capsys.readouterr().out

    bam1 = tmp_path / "v.bam"
    bam1.write_bytes(b"")
    fake_bams[str(bam1)] = [FakeAln("r1", "chr1", 120, "20M40N10M")]
    assert cli.main(["view", str(bam1), "-n", "1", "--regions", str(rdir)]) == 0
    out = capsys.readouterr().out
    assert "r1\tchr1\t120-140,180-190\tA,B" in out


def _late_mate_bam(tmp_path, fake_bams, header=""):
    # x returns after more records than the name-grouping check samples
    bam1 = tmp_path / "late.bam"
    bam1.write_bytes(b"")
    records = [FakeAln("x", "chr1", 110, "10M")]
    records += [FakeAln(f"o{i}", "chr5", i, "10M") for i in range(2100)]
    records.append(FakeAln("x", "chr1", 150, "10M"))
    fake_bams[str(bam1)] = records
    if header:
        fake_bams.headers[str(bam1)] = header
    return bam1


def test_default_count_handles_read_returning_late(tmp_path, fake_bams):
    rdir = _write_regions(tmp_path)
    bam1 = _late_mate_bam(tmp_path, fake_bams)
    out = tmp_path / "counts.tsv"
    rc = cli.main(["count", str(bam1), "-r", str(rdir), "-o", str(out), "--log-level", "ERROR"])
    assert rc == 0
    _, rows = _read_matrix(out)
    assert rows == {"A": ["1"], "B": ["1"], "UNUSED": ["0"]}


def test_contiguous_flush_fails_instead_of_double_counting(tmp_path, fake_bams):
    rdir = _write_regions(tmp_path)
    out = tmp_path / "counts.tsv"
    bam1 = _late_mate_bam(tmp_path, fake_bams)
    assert cli.main(["count", str(bam1), "-r", str(rdir), "-o", str(out), "--flush", "qname",
                     "--log-level", "ERROR"]) == 1
    assert not out.exists()

    # a header that claims name order does not make the file name-grouped
    fake_bams.headers[str(bam1)] = "@HD\tVN:1.6\tSO:queryname\n"
    assert cli.main(["count", str(bam1), "-r", str(rdir), "-o", str(out), "--log-level", "ERROR"]) == 1


def test_count_stranded(tmp_path, fake_bams):
    rdir = tmp_path / "regions"
    rdir.mkdir()
    (rdir / "genes.bed").write_text(
        "chr1\t100\t200\tfwd\t0\t+\n"
        "chr1\t100\t200\trev\t0\t-\n"
    )
    bam1 = tmp_path / "s.bam"
    bam1.write_bytes(b"")
    fake_bams[str(bam1)] = [
        FakeAln("a", "chr1", 120, "10M"),
        FakeAln("b", "chr1", 130, "10M", reverse=True),
        FakeAln("c", "chr1", 140, "10M", reverse=True),
    ]
    out = tmp_path / "counts.tsv"
    assert cli.main(["count", str(bam1), "-r", str(rdir), "-o", str(out), "--log-level", "ERROR"]) == 0
    assert _read_matrix(out)[1] == {"fwd": ["3"], "rev": ["3"]}
    assert cli.main(["count", str(bam1), "-r", str(rdir), "-o", str(out), "--stranded",
                     "--log-level", "ERROR"]) == 0
    assert _read_matrix(out)[1] == {"fwd": ["1"], "rev": ["2"]}
