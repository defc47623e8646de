"""Shared fixtures: sample/batch factories and a controllable clock."""

from typing import Dict, Optional

import pytest

from elastic_ingest_top.models import ClusterHealth, Health, IndexRecord, IndexSample, SampleBatch
from elastic_ingest_top.history import RingBuffer


class MockClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_sample(
    name: str,
    doc_count: int,
    timestamp: float,
    size_bytes: int = 1024,
    health: Health = Health.GREEN,
    shard_count: int = 1,
) -> IndexSample:
    return IndexSample(
        name=name,
        doc_count=doc_count,
        size_bytes=size_bytes,
        health=health,
        shard_count=shard_count,
        timestamp=timestamp,
    )


def make_batch(doc_counts: Dict[str, int], timestamp: float, health: Optional[ClusterHealth] = None) -> SampleBatch:
    return SampleBatch(
        samples=[make_sample(name, docs, timestamp) for name, docs in doc_counts.items()],
        cluster_health=health or ClusterHealth(cluster_name="test", status="green"),
        timestamp=timestamp,
    )


def make_record(name: str, **overrides) -> IndexRecord:
    fields = {
        "name": name,
        "doc_count": 0,
        "size_bytes": 0,
        "health": Health.GREEN,
        "shard_count": 1,
        "timestamp": 0.0,
        "last_seen_cycle": 1,
        "history": RingBuffer(10),
        "rate_per_sec": 0.0,
    }
    fields.update(overrides)
    return IndexRecord(**fields)


@pytest.fixture
def clock() -> MockClock:
    return MockClock()


@pytest.fixture
def sample():
    return make_sample


@pytest.fixture
def batch():
    return make_batch


@pytest.fixture
def record():
    return make_record
