"""
Dashboard state.

Owns every index record, the cluster aggregate, exclusions, the filter, the
sort and the selection cursor. Poll completions and keyboard commands both
mutate it; each mutation, and each view construction, runs under one lock so
the presentation layer only ever sees a settled snapshot.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from elastic_ingest_top.errors import DetailFetchError, SampleSourceError
from elastic_ingest_top.exclusions import ExclusionSet
from elastic_ingest_top.filtering import FilterState
from elastic_ingest_top.history import RingBuffer
from elastic_ingest_top.models import (
    DEFAULT_RATE_SAMPLES,
    ClusterHealth,
    Health,
    IndexDetails,
    IndexRecord,
    SampleBatch,
)
from elastic_ingest_top.rates import STATUS_OK, advance_record
from elastic_ingest_top.sorting import SortKey, SortOrder, SortState

logger = logging.getLogger(__name__)

MIN_REFRESH_SECS = 1
MAX_REFRESH_SECS = 60
PAGE_SIZE = 20


# --------------------------------------------------------------------------- #
# Read-only view handed to the presentation layer                             #
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class PollStatus:
    ok: bool = True
    kind: Optional[str] = None
    message: Optional[str] = None

    @property
    def is_auth_failure(self) -> bool:
        return self.kind == "auth"

    @classmethod
    def failed(cls, error: SampleSourceError) -> "PollStatus":
        return cls(ok=False, kind=error.kind, message=str(error))


@dataclass(frozen=True)
class IndexRow:
    name: str
    doc_count: int
    size_bytes: int
    health: Health
    shard_count: int
    rate_per_sec: float
    history: Tuple[float, ...]
    gradient: float


@dataclass(frozen=True)
class DetailsView:
    visible: bool = False
    loading: bool = False
    index_name: Optional[str] = None
    details: Optional[IndexDetails] = None
    error: Optional[str] = None
    scroll: int = 0


@dataclass(frozen=True)
class DashboardView:
    rows: Tuple[IndexRow, ...]
    selected: Optional[int]
    total_rate_per_sec: float
    aggregate_history: Tuple[float, ...]
    cluster_health: ClusterHealth
    filter_text: str
    filter_valid: bool
    filter_error: Optional[str]
    filter_active: str
    filter_editing: bool
    sort_key: SortKey
    sort_order: SortOrder
    excluded: Tuple[str, ...]
    paused: bool
    refresh_interval: int
    status: PollStatus
    cycle: int
    loading: bool
    fetch_duration: Optional[float]
    total_indices: int
    show_system_indices: bool
    details: DetailsView

    @property
    def selected_row(self) -> Optional[IndexRow]:
        if self.selected is None or self.selected >= len(self.rows):
            return None
        return self.rows[self.selected]


# --------------------------------------------------------------------------- #
# State                                                                       #
# --------------------------------------------------------------------------- #
class DashboardState:
    def __init__(
        self,
        rate_samples: int = DEFAULT_RATE_SAMPLES,
        refresh_interval: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.rate_samples = max(1, rate_samples)
        self.refresh_interval = min(max(refresh_interval, MIN_REFRESH_SECS), MAX_REFRESH_SECS)
        self._clock = clock
        self._lock = threading.RLock()

        self.records: Dict[str, IndexRecord] = {}
        self.aggregate_history = RingBuffer(self.rate_samples)
        self.cluster_health = ClusterHealth()
        self.exclusions = ExclusionSet()
        self.filter = FilterState()
        self.sort = SortState()
        self.selected: Optional[int] = None
        self.paused = False
        self.show_system_indices = False
        self.cycle = 0
        self.status = PollStatus()

        # poll bookkeeping: at most one fetch outstanding, identified by ticket
        self.loading = False
        self._tickets = 0
        self._pending_poll: Optional[int] = None
        self._fetch_started_at: Optional[float] = None
        self._last_poll_started: Optional[float] = None
        self._last_fetch_duration: Optional[float] = None

        self._details = DetailsView()
        self._pending_details: Optional[int] = None

    # ------------------------------------------------------------------ #
    # Poll cycle                                                         #
    # ------------------------------------------------------------------ #
    def poll_due(self, now: Optional[float] = None) -> bool:
        with self._lock:
            if self.paused or self.loading:
                return False
            if self._last_poll_started is None:
                return True
            now = self._clock() if now is None else now
            return now - self._last_poll_started >= self.refresh_interval

    def begin_poll(self, now: Optional[float] = None) -> Optional[int]:
        """Reserve the single fetch slot. Returns a ticket, or None if one is in flight."""
        with self._lock:
            if self.loading:
                return None
            now = self._clock() if now is None else now
            self._tickets += 1
            self._pending_poll = self._tickets
            self.loading = True
            self._fetch_started_at = now
            self._last_poll_started = now
            return self._pending_poll

    def finish_poll(
        self,
        ticket: int,
        batch: Optional[SampleBatch] = None,
        error: Optional[SampleSourceError] = None,
        now: Optional[float] = None,
    ) -> bool:
        """
        Deliver the outcome of the fetch holding ``ticket``.

        Returns False (and changes nothing) when the ticket is stale.
        """
        with self._lock:
            if ticket != self._pending_poll:
                logger.debug("Discarding stale poll result (ticket %s)", ticket)
                return False
            now = self._clock() if now is None else now
            self._pending_poll = None
            self.loading = False
            if self._fetch_started_at is not None:
                self._last_fetch_duration = now - self._fetch_started_at
            self._fetch_started_at = None

            if error is not None:
                logger.warning("Poll failed (%s): %s", error.kind, error)
                self.status = PollStatus.failed(error)
                return True

            self.apply_batch(batch)
            self.status = PollStatus()
            return True

    def abandon_poll(self) -> None:
        """Forget the in-flight fetch; its result will be discarded."""
        with self._lock:
            self._pending_poll = None
            self.loading = False
            self._fetch_started_at = None

    def apply_batch(self, batch: SampleBatch) -> None:
        """Advance one cycle: prune vanished indices, update rates, append the aggregate."""
        with self._lock:
            self.cycle += 1
            current_names = batch.names()

            for name in [name for name in self.records if name not in current_names]:
                logger.debug("Pruning vanished index %s", name)
                del self.records[name]
            self.exclusions.retain(current_names)

            for sample in batch.samples:
                record, status = advance_record(
                    self.records.get(sample.name),
                    sample,
                    self.cycle,
                    self.rate_samples,
                    has_previous_cycle=self.cycle > 1,
                )
                if status != STATUS_OK:
                    logger.debug("Rate for %s on cycle %d: %s", sample.name, self.cycle, status)
                self.records[sample.name] = record

            self.aggregate_history.append(self.total_rate_per_sec())
            self.cluster_health = batch.cluster_health
            self._clamp_selection()

    def total_rate_per_sec(self) -> float:
        with self._lock:
            return sum(
                record.rate_per_sec
                for name, record in self.records.items()
                if name not in self.exclusions
            )

    # ------------------------------------------------------------------ #
    # Displayed list                                                     #
    # ------------------------------------------------------------------ #
    def _visible(self, record: IndexRecord) -> bool:
        if record.name in self.exclusions:
            return False
        if not self.show_system_indices and record.name.startswith("."):
            return False
        return self.filter.matches(record)

    def displayed(self) -> List[Tuple[IndexRecord, float]]:
        """Filtered, non-excluded records in display order, with gradient positions."""
        with self._lock:
            candidates = [record for record in self.records.values() if self._visible(record)]
            return self.sort.apply(candidates)

    def _clamp_selection(self) -> None:
        if self.selected is None:
            return
        count = len(self.displayed())
        if count == 0:
            self.selected = None
        elif self.selected >= count:
            self.selected = count - 1

    def selected_record(self) -> Optional[IndexRecord]:
        with self._lock:
            if self.selected is None:
                return None
            rows = self.displayed()
            if self.selected >= len(rows):
                return None
            return rows[self.selected][0]

    # ------------------------------------------------------------------ #
    # Commands                                                           #
    # ------------------------------------------------------------------ #
    def move_selection(self, delta: int) -> None:
        with self._lock:
            count = len(self.displayed())
            if count == 0:
                self.selected = None
                return
            if self.selected is None:
                self.selected = 0 if delta > 0 else count - 1
                return
            self.selected = min(max(self.selected + delta, 0), count - 1)

    def select_up(self) -> None:
        self.move_selection(-1)

    def select_down(self) -> None:
        self.move_selection(1)

    def select_page_up(self, page_size: int = PAGE_SIZE) -> None:
        self.move_selection(-page_size)

    def select_page_down(self, page_size: int = PAGE_SIZE) -> None:
        self.move_selection(page_size)

    def select_first(self) -> None:
        with self._lock:
            if self.displayed():
                self.selected = 0

    def select_last(self) -> None:
        with self._lock:
            count = len(self.displayed())
            if count:
                self.selected = count - 1

    def next_sort_key(self) -> None:
        with self._lock:
            self.sort.next_key()

    def prev_sort_key(self) -> None:
        with self._lock:
            self.sort.prev_key()

    def set_sort_key(self, key: SortKey) -> None:
        with self._lock:
            self.sort.set_key(key)

    def reverse_sort(self) -> None:
        with self._lock:
            self.sort.toggle_order()

    def toggle_exclude(self, name: str) -> bool:
        """Flip exclusion for ``name``. Returns True when it is now excluded."""
        with self._lock:
            if name not in self.records:
                return False
            excluded = self.exclusions.toggle(name)
            self._clamp_selection()
            return excluded

    def toggle_exclude_selected(self) -> Optional[str]:
        """Exclude the row under the cursor. Returns its name, if any."""
        with self._lock:
            record = self.selected_record()
            if record is None:
                return None
            self.toggle_exclude(record.name)
            return record.name

    def clear_exclusions(self) -> None:
        with self._lock:
            self.exclusions.clear()

    def enter_filter(self) -> None:
        with self._lock:
            self.filter.enter()

    def exit_filter(self) -> None:
        with self._lock:
            self.filter.exit()

    def edit_filter(self, text: str) -> bool:
        """Replace the filter text. Returns False if it failed to compile."""
        with self._lock:
            compiled = self.filter.set_text(text)
            self._clamp_selection()
            return compiled

    def clear_filter(self) -> None:
        with self._lock:
            self.filter.clear()
            self._clamp_selection()

    def toggle_pause(self) -> bool:
        with self._lock:
            self.paused = not self.paused
            return self.paused

    def adjust_refresh_interval(self, delta: int) -> int:
        with self._lock:
            self.refresh_interval = min(
                max(self.refresh_interval + delta, MIN_REFRESH_SECS), MAX_REFRESH_SECS
            )
            return self.refresh_interval

    def toggle_system_indices(self) -> None:
        with self._lock:
            self.show_system_indices = not self.show_system_indices
            self.selected = None

    # ------------------------------------------------------------------ #
    # Detail popup                                                       #
    # ------------------------------------------------------------------ #
    def request_detail(self) -> Optional[Tuple[int, IndexRecord]]:
        """
        Open the detail popup for the selected row.

        Returns (ticket, record) for the caller to fetch with, or None when
        nothing is selected.
        """
        with self._lock:
            record = self.selected_record()
            if record is None:
                return None
            self._tickets += 1
            self._pending_details = self._tickets
            self._details = DetailsView(visible=True, loading=True, index_name=record.name)
            return self._pending_details, record

    def finish_detail(
        self,
        ticket: int,
        details: Optional[IndexDetails] = None,
        error: Optional[DetailFetchError] = None,
    ) -> bool:
        with self._lock:
            if ticket != self._pending_details or not self._details.visible:
                return False
            self._pending_details = None
            if error is not None:
                logger.warning("Detail fetch for %s failed: %s", self._details.index_name, error)
                self._details = DetailsView(
                    visible=True, index_name=self._details.index_name, error=str(error)
                )
            else:
                self._details = DetailsView(
                    visible=True, index_name=self._details.index_name, details=details
                )
            return True

    def close_detail(self) -> None:
        with self._lock:
            self._pending_details = None
            self._details = DetailsView()

    def scroll_detail(self, delta: int) -> None:
        with self._lock:
            if self._details.visible:
                scroll = max(self._details.scroll + delta, 0)
                self._details = DetailsView(
                    visible=True,
                    loading=self._details.loading,
                    index_name=self._details.index_name,
                    details=self._details.details,
                    error=self._details.error,
                    scroll=scroll,
                )

    # ------------------------------------------------------------------ #
    # Snapshot                                                           #
    # ------------------------------------------------------------------ #
    def view(self, now: Optional[float] = None) -> DashboardView:
        with self._lock:
            rows = tuple(
                IndexRow(
                    name=record.name,
                    doc_count=record.doc_count,
                    size_bytes=record.size_bytes,
                    health=record.health,
                    shard_count=record.shard_count,
                    rate_per_sec=record.rate_per_sec,
                    history=tuple(record.history),
                    gradient=position,
                )
                for record, position in self.displayed()
            )
            if self.loading and self._fetch_started_at is not None:
                now = self._clock() if now is None else now
                fetch_duration = now - self._fetch_started_at
            else:
                fetch_duration = self._last_fetch_duration

            return DashboardView(
                rows=rows,
                selected=self.selected,
                total_rate_per_sec=self.total_rate_per_sec(),
                aggregate_history=tuple(self.aggregate_history),
                cluster_health=self.cluster_health,
                filter_text=self.filter.text,
                filter_valid=self.filter.valid,
                filter_error=self.filter.error,
                filter_active=self.filter.active_source,
                filter_editing=self.filter.editing,
                sort_key=self.sort.key,
                sort_order=self.sort.order,
                excluded=tuple(self.exclusions.names()),
                paused=self.paused,
                refresh_interval=self.refresh_interval,
                status=self.status,
                cycle=self.cycle,
                loading=self.loading,
                fetch_duration=fetch_duration,
                total_indices=len(self.records),
                show_system_indices=self.show_system_indices,
                details=self._details,
            )
