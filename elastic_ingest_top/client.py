"""
Cluster REST client.

Implements the sample source the dashboard polls: one ``_stats`` call for
the per-index counters and one ``_cluster/health`` call per cycle. Transport
and HTTP failures are translated into the SampleSourceError hierarchy here
so nothing above this module has to know about ``requests``.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple, Union

import requests
import urllib3

from elastic_ingest_top.details import fetch_index_details
from elastic_ingest_top.errors import (
    AuthError,
    ClusterConnectionError,
    FetchTimeoutError,
    ParseError,
)
from elastic_ingest_top.models import ClusterHealth, Health, IndexDetails, IndexRecord, IndexSample, SampleBatch

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
STATS_FILTER_PATH = ",".join(
    [
        "indices.*.health",
        "indices.*.primaries.docs.count",
        "indices.*.primaries.store.size_in_bytes",
        "indices.*.primaries.shard_stats.total_count",
    ]
)


def auth_from_credentials(
    api_key: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
) -> Tuple[Optional[Tuple[str, str]], Optional[dict]]:
    """Return (basic auth tuple, headers). The API key wins when both are given."""
    if api_key:
        return None, {"Authorization": f"ApiKey {api_key}"}
    if username and password:
        return (username, password), None
    return None, None


# --------------------------------------------------------------------------- #
# Response parsing                                                            #
# --------------------------------------------------------------------------- #
def _as_int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ParseError(f"{what} is not a number: {value!r}")
    try:
        return int(value)
    except ValueError:
        raise ParseError(f"{what} is not a number: {value!r}")


def parse_index_stats(data: Dict[str, Any], timestamp: float) -> List[IndexSample]:
    """Turn a filtered ``_stats`` body into samples, one per index."""
    if not isinstance(data, dict):
        raise ParseError("Stats response is not a JSON object")

    # filter_path drops the key entirely when the cluster has no indices
    indices = data.get("indices", {})
    if not isinstance(indices, dict):
        raise ParseError("Stats response 'indices' is not an object")

    samples = []
    for index_name, index_stats in indices.items():
        try:
            primaries = index_stats.get("primaries", {})
            health_value = index_stats["health"]
            doc_count = primaries.get("docs", {}).get("count", 0)
            size_bytes = primaries.get("store", {}).get("size_in_bytes", 0)
            shard_count = primaries.get("shard_stats", {}).get("total_count", 0)
        except (AttributeError, KeyError) as exc:
            raise ParseError(f"Unexpected stats structure for index {index_name}: {exc!r}")

        try:
            health = Health.parse(health_value)
        except ValueError:
            raise ParseError(f"Unknown health {health_value!r} for index {index_name}")

        samples.append(
            IndexSample(
                name=index_name,
                doc_count=_as_int(doc_count, f"{index_name} docs.count"),
                size_bytes=_as_int(size_bytes, f"{index_name} store.size_in_bytes"),
                health=health,
                shard_count=_as_int(shard_count, f"{index_name} shard_stats.total_count"),
                timestamp=timestamp,
            )
        )
    return samples


def parse_cluster_health(data: Dict[str, Any]) -> ClusterHealth:
    if not isinstance(data, dict):
        raise ParseError("Cluster health response is not a JSON object")
    try:
        return ClusterHealth(
            cluster_name=str(data["cluster_name"]),
            status=str(data["status"]),
            number_of_nodes=_as_int(data.get("number_of_nodes", 0), "number_of_nodes"),
            number_of_data_nodes=_as_int(data.get("number_of_data_nodes", 0), "number_of_data_nodes"),
            active_primary_shards=_as_int(data.get("active_primary_shards", 0), "active_primary_shards"),
            active_shards=_as_int(data.get("active_shards", 0), "active_shards"),
            relocating_shards=_as_int(data.get("relocating_shards", 0), "relocating_shards"),
            initializing_shards=_as_int(data.get("initializing_shards", 0), "initializing_shards"),
            unassigned_shards=_as_int(data.get("unassigned_shards", 0), "unassigned_shards"),
            active_shards_percent=float(data.get("active_shards_percent_as_number", 0.0)),
            number_of_pending_tasks=_as_int(data.get("number_of_pending_tasks", 0), "number_of_pending_tasks"),
        )
    except KeyError as exc:
        raise ParseError(f"Cluster health response is missing {exc}")
    except (TypeError, ValueError) as exc:
        raise ParseError(f"Unexpected cluster health value: {exc}")


# --------------------------------------------------------------------------- #
# Client                                                                      #
# --------------------------------------------------------------------------- #
class ClusterClient:
    """
    Thin wrapper over one ``requests.Session``.

    ``verify`` is passed straight to requests: True, False (``--insecure``)
    or the path of a CA bundle.
    """

    def __init__(
        self,
        endpoint: str,
        auth: Optional[Tuple[str, str]] = None,
        headers: Optional[dict] = None,
        verify: Union[bool, str] = True,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.auth = auth
        self.session.verify = verify
        if headers:
            self.session.headers.update(headers)
        if verify is False:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    def get_json(self, path: str, params: Optional[dict] = None) -> Any:
        """GET ``path`` and decode JSON, raising SampleSourceError subclasses."""
        url = f"{self.endpoint}/{path.lstrip('/')}"
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as exc:
            raise FetchTimeoutError(f"Request to {path} timed out after {self.timeout}s: {exc}")
        except requests.exceptions.SSLError as exc:
            raise ClusterConnectionError(f"TLS error: {exc}")
        except requests.exceptions.RequestException as exc:
            raise ClusterConnectionError(f"Connection failed: {exc}")

        if resp.status_code in (401, 403):
            raise AuthError(f"Authentication rejected (status {resp.status_code})", resp.status_code)
        if not resp.ok:
            body = resp.text[:200]
            raise ClusterConnectionError(f"API error (status {resp.status_code}): {body}", resp.status_code)

        try:
            return resp.json()
        except ValueError as exc:
            raise ParseError(f"Invalid JSON from {path}: {exc}")

    def get_index_samples(self) -> List[IndexSample]:
        data = self.get_json(
            "_stats/docs,store",
            params={
                "level": "indices",
                "expand_wildcards": "open,hidden",
                "filter_path": STATS_FILTER_PATH,
            },
        )
        return parse_index_stats(data, time.time())

    def get_cluster_health(self) -> ClusterHealth:
        return parse_cluster_health(self.get_json("_cluster/health"))

    def fetch(self) -> SampleBatch:
        """One poll cycle's worth of data. Either request failing fails the cycle."""
        samples = self.get_index_samples()
        timestamp = samples[0].timestamp if samples else time.time()
        health = self.get_cluster_health()
        logger.debug("Fetched %d index samples from %s", len(samples), self.endpoint)
        return SampleBatch(samples=samples, cluster_health=health, timestamp=timestamp)

    def fetch_details(self, record: IndexRecord) -> IndexDetails:
        return fetch_index_details(self, record)

    def close(self) -> None:
        self.session.close()
