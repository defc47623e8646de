"""Data model shared by the sample source, the rate engine and the UI."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from elastic_ingest_top.history import RingBuffer

DEFAULT_RATE_SAMPLES = 10


class Health(Enum):
    """Index health on a fixed severity scale (green < yellow < red)."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def parse(cls, value: str) -> "Health":
        """Parse the lowercase string the cluster reports. Raises ValueError."""
        return cls(str(value).strip().lower())


_SEVERITY = {Health.GREEN: 0, Health.YELLOW: 1, Health.RED: 2}


@dataclass(frozen=True)
class IndexSample:
    """One index as observed by one poll cycle."""

    name: str
    doc_count: int
    size_bytes: int
    health: Health
    shard_count: int
    timestamp: float  # wall-clock seconds


@dataclass(frozen=True)
class ClusterHealth:
    cluster_name: str = ""
    status: str = "unknown"
    number_of_nodes: int = 0
    number_of_data_nodes: int = 0
    active_primary_shards: int = 0
    active_shards: int = 0
    relocating_shards: int = 0
    initializing_shards: int = 0
    unassigned_shards: int = 0
    active_shards_percent: float = 0.0
    number_of_pending_tasks: int = 0


@dataclass(frozen=True)
class SampleBatch:
    """Everything one successful poll cycle produced."""

    samples: List[IndexSample]
    cluster_health: ClusterHealth
    timestamp: float

    def names(self) -> set:
        return {sample.name for sample in self.samples}


@dataclass
class IndexRecord:
    """
    Live state for one index name.

    ``doc_count`` and ``timestamp`` double as the baseline for the next
    rate computation. ``history`` holds instantaneous rates; ``rate_per_sec``
    is their mean.
    """

    name: str
    doc_count: int
    size_bytes: int
    health: Health
    shard_count: int
    timestamp: float
    last_seen_cycle: int
    history: RingBuffer
    rate_per_sec: float = 0.0

    @classmethod
    def from_sample(cls, sample: IndexSample, cycle: int, capacity: int) -> "IndexRecord":
        return cls(
            name=sample.name,
            doc_count=sample.doc_count,
            size_bytes=sample.size_bytes,
            health=sample.health,
            shard_count=sample.shard_count,
            timestamp=sample.timestamp,
            last_seen_cycle=cycle,
            history=RingBuffer(capacity),
        )

    def observe(self, sample: IndexSample, cycle: int) -> None:
        """Copy the non-derived fields of ``sample`` into this record."""
        self.doc_count = sample.doc_count
        self.size_bytes = sample.size_bytes
        self.health = sample.health
        self.shard_count = sample.shard_count
        self.timestamp = sample.timestamp
        self.last_seen_cycle = cycle


# --------------------------------------------------------------------------- #
# Detail view (fetched on demand, never part of the poll cycle)               #
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class ShardInfo:
    shard_id: int
    primary: bool
    state: str
    node: str
    docs: Optional[int] = None
    size: Optional[str] = None


@dataclass(frozen=True)
class DataStreamDetails:
    name: str
    timestamp_field: str
    generation: int
    total_backing_indices: int
    backing_index_position: int
    is_write_index: bool
    template: Optional[str] = None
    data_retention: Optional[str] = None


@dataclass(frozen=True)
class IndexDetails:
    name: str
    doc_count: int
    rate_per_sec: float
    size_bytes: int
    provided_name: Optional[str] = None
    creation_date: Optional[str] = None
    uuid: Optional[str] = None
    health: Optional[str] = None
    status: Optional[str] = None
    primary_shards: int = 0
    replica_shards: int = 0
    is_frozen: bool = False
    is_partial: bool = False
    ilm_policy: Optional[str] = None
    ilm_phase: Optional[str] = None
    total_segments: int = 0
    shard_allocation: List[ShardInfo] = field(default_factory=list)
    templates: List[str] = field(default_factory=list)
    data_stream: Optional[DataStreamDetails] = None
