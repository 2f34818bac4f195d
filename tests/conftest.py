import pytest


class FakeAln:
    """Stand-in for a bamnostic AlignedSegment with only the fields readloc reads."""

    def __init__(self, name, chrom, pos, cigar, unmapped=False, nh=None, reverse=False):
        self.query_name = name
        self.reference_name = chrom
        self.pos = pos
        self.cigarstring = cigar
        self.is_unmapped = unmapped
        self.is_reverse = reverse
        self._tags = {} if nh is None else {"NH": nh}

    def opt(self, tag):
        return self._tags[tag]


class FakeAlignmentFile:
    def __init__(self, records, text=""):
        self._records = records
        self.text = text

    def __iter__(self):
        return iter(list(self._records))

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    def close(self):
        pass


class FakeBams(dict):
    """path -> records; headers holds optional SAM header text per path."""

    def __init__(self):
        super().__init__()
        self.headers = {}


@pytest.fixture
def fake_bams(monkeypatch):
    """Register in-memory BAMs by path; patches bamnostic.AlignmentFile."""
    import bamnostic

    files = FakeBams()

    def fake_alignmentfile(path, mode="rb"):
        if str(path) not in files:
            raise OSError(f"No such BAM: {path}")
        return FakeAlignmentFile(files[str(path)], files.headers.get(str(path), ""))

    monkeypatch.setattr(bamnostic, "AlignmentFile", fake_alignmentfile)
    return files
