"""One poll cycle: reserve the fetch slot, fetch outside the lock, deliver the result."""

import logging
from typing import Optional, Protocol

from elastic_ingest_top.errors import DetailFetchError, SampleSourceError
from elastic_ingest_top.models import IndexDetails, IndexRecord, SampleBatch
from elastic_ingest_top.state import DashboardState

logger = logging.getLogger(__name__)


class SampleSource(Protocol):
    def fetch(self) -> SampleBatch:
        """Return one batch or raise a SampleSourceError subclass."""


class DetailSource(Protocol):
    def fetch_details(self, record: IndexRecord) -> IndexDetails:
        """Return detail for one index or raise DetailFetchError."""


class Poller:
    """
    Drives ``state`` from ``source``.

    ``start()`` runs on the UI side and never blocks; ``run(ticket)`` does the
    slow fetch and is meant for a background thread.
    """

    def __init__(self, state: DashboardState, source: SampleSource):
        self.state = state
        self.source = source

    def start(self, force: bool = False) -> Optional[int]:
        """Reserve a fetch if one is due (or ``force``). Returns the ticket or None."""
        if not force and not self.state.poll_due():
            return None
        return self.state.begin_poll()

    def run(self, ticket: int) -> bool:
        """Fetch and deliver. Returns False if the result arrived too late to be used."""
        try:
            batch = self.source.fetch()
        except SampleSourceError as exc:
            return self.state.finish_poll(ticket, error=exc)
        except Exception as exc:
            logger.exception("Unexpected failure while polling")
            return self.state.finish_poll(ticket, error=SampleSourceError(f"{type(exc).__name__}: {exc}"))
        return self.state.finish_poll(ticket, batch=batch)

    def run_detail(self, details_source: DetailSource, ticket: int, record: IndexRecord) -> bool:
        try:
            details = details_source.fetch_details(record)
        except DetailFetchError as exc:
            return self.state.finish_detail(ticket, error=exc)
        except Exception as exc:
            logger.exception("Unexpected failure while fetching details for %s", record.name)
            return self.state.finish_detail(
                ticket, error=DetailFetchError(f"Could not load details for {record.name}: {type(exc).__name__}")
            )
        return self.state.finish_detail(ticket, details=details)
