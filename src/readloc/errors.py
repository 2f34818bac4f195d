class ReadlocError(RuntimeError):
    """Base class for errors raised by the counting core."""


class InvalidRegion(ReadlocError):
    """A region with a malformed interval; the whole region set is rejected."""


class DuplicateRegionId(ReadlocError):
    """Two regions share one id; the whole region set is rejected."""


class EngineClosed(ReadlocError):
    """Use of an engine or counter after it has been finalized."""


class ReadNotContiguous(ReadlocError):
    """A read's blocks reappeared after the read was flushed in streaming mode."""
