"""Count reads per genomic region exactly once per read."""

from .readlocClasses import Interval, Region, ReadSegment, LogicalRead
from .errors import ReadlocError, InvalidRegion, DuplicateRegionId, EngineClosed, ReadNotContiguous
from .index import RegionIndex, merge_overlapping_regions
from .collector import ReadSegmentCollector
from .assign import assign, assign_best
from .counter import RegionCounter, merge_counts
from .engine import CountEngine, EngineState, count_segments
from .shard import count_by_chromosome, partition_by_chromosome

__version__ = "0.1.0"
