"""
Per-index detail lookup for the detail popup.

Seven independent read-only calls. Any of them may fail (ILM disabled,
no data streams, missing privileges); the popup then shows what did come
back. Only when nothing comes back at all is it an error.
"""

import fnmatch
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from elastic_ingest_top.errors import DetailFetchError, SampleSourceError
from elastic_ingest_top.models import DataStreamDetails, IndexDetails, IndexRecord, ShardInfo

logger = logging.getLogger(__name__)


def _requests_for(index_name: str) -> Dict[str, Tuple[str, Optional[dict]]]:
    name = quote(index_name, safe="")
    return {
        "settings": (f"{name}/_settings", None),
        "ilm": (f"_ilm/explain/{name}", None),
        "segments": (f"{name}/_stats/segments", None),
        "shards": (
            f"_cat/shards/{name}",
            {"format": "json", "h": "index,shard,prirep,state,docs,store,node"},
        ),
        "templates": ("_index_template", None),
        "cat": (f"_cat/indices/{name}", {"format": "json", "h": "health,status,index"}),
        "data_streams": ("_data_stream", None),
    }


def template_matches(pattern: str, index_name: str) -> bool:
    """Index template patterns are simple wildcards."""
    return fnmatch.fnmatchcase(index_name, pattern)


def format_creation_date(value: Optional[str]) -> Optional[str]:
    """``index.creation_date`` is epoch millis as a string."""
    try:
        millis = int(value)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# --------------------------------------------------------------------------- #
# Assembly                                                                    #
# --------------------------------------------------------------------------- #
def parse_shards(entries: Optional[List[dict]]) -> List[ShardInfo]:
    shards = []
    for entry in entries or []:
        docs = entry.get("docs")
        shards.append(
            ShardInfo(
                shard_id=_to_int(entry.get("shard")),
                primary=entry.get("prirep") == "p",
                state=entry.get("state", ""),
                node=entry.get("node") or "unassigned",
                docs=_to_int(docs) if docs is not None else None,
                size=entry.get("store"),
            )
        )
    return shards


def find_data_stream(response: Optional[dict], index_name: str) -> Optional[DataStreamDetails]:
    for stream in (response or {}).get("data_streams", []):
        backing = [index.get("index_name") for index in stream.get("indices", [])]
        if index_name not in backing:
            continue
        position = backing.index(index_name)
        return DataStreamDetails(
            name=stream.get("name", ""),
            timestamp_field=stream.get("timestamp_field", {}).get("name", "@timestamp"),
            generation=_to_int(stream.get("generation")),
            total_backing_indices=len(backing),
            backing_index_position=position + 1,
            # the last backing index is the write index
            is_write_index=position == len(backing) - 1,
            template=stream.get("template"),
            data_retention=(stream.get("lifecycle") or {}).get("data_retention"),
        )
    return None


def build_index_details(record: IndexRecord, responses: Dict[str, Any]) -> IndexDetails:
    """Combine whatever sub-responses arrived (missing ones are None)."""
    name = record.name

    index_settings = ((responses.get("settings") or {}).get(name) or {}).get("settings", {}).get("index", {})

    ilm_status = ((responses.get("ilm") or {}).get("indices") or {}).get(name) or {}
    ilm_policy = ilm_status.get("policy") or (index_settings.get("lifecycle") or {}).get("name")

    segments = (
        ((responses.get("segments") or {}).get("indices") or {}).get(name, {})
        .get("primaries", {})
        .get("segments", {})
        .get("count", 0)
    )

    templates = [
        template.get("name")
        for template in (responses.get("templates") or {}).get("index_templates", [])
        if any(
            template_matches(pattern, name)
            for pattern in template.get("index_template", {}).get("index_patterns", [])
        )
    ]

    cat_entries = responses.get("cat") or []
    cat_entry = cat_entries[0] if cat_entries else {}

    store_type = (index_settings.get("store") or {}).get("type") or ""

    return IndexDetails(
        name=name,
        doc_count=record.doc_count,
        rate_per_sec=record.rate_per_sec,
        size_bytes=record.size_bytes,
        provided_name=index_settings.get("provided_name"),
        creation_date=format_creation_date(index_settings.get("creation_date")),
        uuid=index_settings.get("uuid"),
        health=cat_entry.get("health"),
        status=cat_entry.get("status"),
        primary_shards=_to_int(index_settings.get("number_of_shards")),
        replica_shards=_to_int(index_settings.get("number_of_replicas")),
        is_frozen=str(index_settings.get("frozen", "false")).lower() == "true",
        is_partial="snapshot" in store_type or "searchable" in store_type,
        ilm_policy=ilm_policy,
        ilm_phase=ilm_status.get("phase"),
        total_segments=_to_int(segments),
        shard_allocation=parse_shards(responses.get("shards")),
        templates=templates,
        data_stream=find_data_stream(responses.get("data_streams"), name),
    )


def fetch_index_details(client: Any, record: IndexRecord) -> IndexDetails:
    """
    Run every detail request through ``client.get_json`` and assemble the result.

    Raises DetailFetchError only if all of them fail.
    """
    responses: Dict[str, Any] = {}
    errors: List[SampleSourceError] = []
    for key, (path, params) in _requests_for(record.name).items():
        try:
            responses[key] = client.get_json(path, params=params)
        except SampleSourceError as exc:
            logger.debug("Detail request %s for %s failed: %s", key, record.name, exc)
            responses[key] = None
            errors.append(exc)

    if len(errors) == len(responses):
        raise DetailFetchError(f"Could not load details for {record.name}: {errors[0]}")

    try:
        return build_index_details(record, responses)
    except (AttributeError, TypeError) as exc:
        raise DetailFetchError(f"Unexpected detail response for {record.name}: {exc}")
