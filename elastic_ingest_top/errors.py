"""Exception hierarchy for elastic-ingest-top."""

from typing import Optional


class ElasticIngestTopError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(ElasticIngestTopError):
    """Invalid startup configuration. Always fatal, raised before the UI starts."""


# --------------------------------------------------------------------------- #
# Sample source failures (recoverable, one poll cycle)                        #
# --------------------------------------------------------------------------- #
class SampleSourceError(ElasticIngestTopError):
    """A poll cycle could not produce a sample batch."""

    kind = "error"


class ClusterConnectionError(SampleSourceError):
    """Transport, DNS, TLS or unexpected HTTP status failure."""

    kind = "connection"

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthError(SampleSourceError):
    """Credentials were rejected (HTTP 401/403). Waiting will not fix it."""

    kind = "auth"

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ParseError(SampleSourceError):
    """The cluster answered, but the body was not what we expected."""

    kind = "parse"


class FetchTimeoutError(SampleSourceError):
    kind = "timeout"


# --------------------------------------------------------------------------- #
# Everything else                                                             #
# --------------------------------------------------------------------------- #
class FilterCompileError(ElasticIngestTopError):
    """The filter expression does not parse or does not type-check."""

    def __init__(self, message: str, position: Optional[int] = None):
        if position is not None:
            message = f"{message} (at {position})"
        super().__init__(message)
        self.position = position


class DetailFetchError(ElasticIngestTopError):
    """The per-index detail lookup failed entirely."""
