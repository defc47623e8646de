"""
Rate engine.

Turns successive cumulative doc-count samples of an index into an
instantaneous ingestion rate (docs/sec), appends it to the index's
bounded history and publishes the moving average of that history as the
displayed rate.
"""

import logging
from typing import Optional, Tuple

from elastic_ingest_top.models import IndexRecord, IndexSample

logger = logging.getLogger(__name__)

# Outcome of one rate step, per index
STATUS_OK = "ok"
STATUS_FIRST_CYCLE = "first_cycle"
STATUS_NO_BASELINE = "no_historical_data"
STATUS_COUNTER_RESET = "counter_reset"
STATUS_INVALID_TIME_DELTA = "invalid_time_delta"


def calculate_instantaneous_rate(
    previous_docs: int,
    previous_timestamp: float,
    current_docs: int,
    current_timestamp: float,
) -> Tuple[str, Optional[float]]:
    """
    Rate between two consecutive samples of the same index.

    Returns (status, rate). ``rate`` is None when the interval is not
    positive and 0.0 when the counter went backwards.
    """
    delta_seconds = current_timestamp - previous_timestamp
    if delta_seconds <= 0:
        return STATUS_INVALID_TIME_DELTA, None

    delta_docs = current_docs - previous_docs
    # Deleted and recreated under the same name, or a source-side rollover
    if delta_docs < 0:
        return STATUS_COUNTER_RESET, 0.0

    return STATUS_OK, delta_docs / delta_seconds


def advance_record(
    record: Optional[IndexRecord],
    sample: IndexSample,
    cycle: int,
    capacity: int,
    has_previous_cycle: bool = True,
) -> Tuple[IndexRecord, str]:
    """
    Apply one poll cycle's sample to the record for that index.

    ``record`` is None for a name that was not present in the previous
    cycle. On the very first cycle (``has_previous_cycle`` False) there is
    no interval at all, so nothing is appended; afterwards an index without
    a baseline records an instantaneous 0.0 so its start shows up in the
    window.
    """
    if record is None:
        record = IndexRecord.from_sample(sample, cycle, capacity)
        if has_previous_cycle:
            record.history.append(0.0)
            status = STATUS_NO_BASELINE
        else:
            status = STATUS_FIRST_CYCLE
        record.rate_per_sec = record.history.mean()
        return record, status

    if record.last_seen_cycle != cycle - 1:
        record.history.clear()
        record.history.append(0.0)
        record.observe(sample, cycle)
        record.rate_per_sec = 0.0
        return record, STATUS_NO_BASELINE

    status, rate = calculate_instantaneous_rate(
        record.doc_count, record.timestamp, sample.doc_count, sample.timestamp
    )

    if status == STATUS_INVALID_TIME_DELTA:
        # Keep the previous rate; the next interval starts from this sample
        record.observe(sample, cycle)
        return record, status

    if status == STATUS_COUNTER_RESET:
        logger.info(
            "Counter reset on %s (%d -> %d docs)", record.name, record.doc_count, sample.doc_count
        )
        record.history.clear()

    record.history.append(rate)
    record.rate_per_sec = record.history.mean()
    record.observe(sample, cycle)
    return record, status
