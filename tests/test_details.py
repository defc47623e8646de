"""Tests for the per-index detail lookup."""

from unittest.mock import MagicMock

import pytest

from elastic_ingest_top.details import (
    build_index_details,
    fetch_index_details,
    find_data_stream,
    format_creation_date,
    template_matches,
)
from elastic_ingest_top.errors import ClusterConnectionError, DetailFetchError

from conftest import make_record

INDEX = ".ds-logs-app-2024.01.01-000002"

RESPONSES = {
    "settings": {
        INDEX: {
            "settings": {
                "index": {
                    "creation_date": "1704067200000",
                    "provided_name": INDEX,
                    "uuid": "u-1",
                    "number_of_shards": "2",
                    "number_of_replicas": "1",
                    "lifecycle": {"name": "fallback-policy"},
                }
            }
        }
    },
    "ilm": {"indices": {INDEX: {"policy": "logs", "phase": "hot"}}},
    "segments": {"indices": {INDEX: {"primaries": {"segments": {"count": 14}}}}},
    "shards": [
        {"index": INDEX, "shard": "0", "prirep": "p", "state": "STARTED", "docs": "100", "store": "1mb", "node": "n1"},
        {"index": INDEX, "shard": "0", "prirep": "r", "state": "UNASSIGNED", "docs": None, "store": None, "node": None},
    ],
    "templates": {
        "index_templates": [
            {"name": "logs", "index_template": {"index_patterns": ["logs-*-*"]}},
            {"name": "ds-logs", "index_template": {"index_patterns": [".ds-logs-*"]}},
        ]
    },
    "cat": [{"health": "yellow", "status": "open", "index": INDEX}],
    "data_streams": {
        "data_streams": [
            {
                "name": "logs-app",
                "timestamp_field": {"name": "@timestamp"},
                "generation": 2,
                "template": "logs",
                "lifecycle": {"data_retention": "7d"},
                "indices": [
                    {"index_name": ".ds-logs-app-2024.01.01-000001"},
                    {"index_name": INDEX},
                ],
            }
        ]
    },
}


@pytest.fixture
def record():
    return make_record(INDEX, doc_count=100, size_bytes=2048, rate_per_sec=3.5)


class TestHelpers:
    def test_template_wildcards(self):
        assert template_matches("logs-*", "logs-app")
        assert not template_matches("logs-*", "metrics-app")

    def test_creation_date(self):
        assert format_creation_date("1704067200000") == "2024-01-01 00:00:00 UTC"
        assert format_creation_date(None) is None
        assert format_creation_date("soon") is None

    def test_data_stream_not_found(self):
        assert find_data_stream({"data_streams": []}, "x") is None
        assert find_data_stream(None, "x") is None


class TestBuildIndexDetails:
    def test_full_assembly(self, record):
        details = build_index_details(record, RESPONSES)
        assert details.doc_count == 100
        assert details.rate_per_sec == 3.5
        assert details.creation_date == "2024-01-01 00:00:00 UTC"
        assert details.primary_shards == 2
        assert details.replica_shards == 1
        assert details.ilm_policy == "logs"
        assert details.ilm_phase == "hot"
        assert details.total_segments == 14
        assert details.health == "yellow"
        assert details.templates == ["ds-logs"]
        assert [s.node for s in details.shard_allocation] == ["n1", "unassigned"]
        assert details.shard_allocation[0].primary is True
        assert details.shard_allocation[1].docs is None

        stream = details.data_stream
        assert stream.name == "logs-app"
        assert stream.backing_index_position == 2
        assert stream.total_backing_indices == 2
        assert stream.is_write_index is True
        assert stream.data_retention == "7d"

    def test_ilm_falls_back_to_setting(self, record):
        responses = dict(RESPONSES, ilm=None)
        assert build_index_details(record, responses).ilm_policy == "fallback-policy"

    def test_everything_missing_but_record(self, record):
        details = build_index_details(record, {})
        assert details.name == INDEX
        assert details.templates == []
        assert details.data_stream is None
        assert details.is_frozen is False


class TestFetchIndexDetails:
    def test_partial_failures_degrade(self, record):
        client = MagicMock()

        def get_json(path, params=None):
            if path.startswith("_ilm"):
                raise ClusterConnectionError("ILM disabled", 400)
            key = {
                "_settings": "settings",
                "segments": "segments",
                "_cat/shards": "shards",
                "_index_template": "templates",
                "_cat/indices": "cat",
                "_data_stream": "data_streams",
            }
            for fragment, name in key.items():
                if fragment in path:
                    return RESPONSES[name]
            raise AssertionError(path)

        client.get_json.side_effect = get_json
        details = fetch_index_details(client, record)
        assert details.ilm_phase is None
        assert details.ilm_policy == "fallback-policy"
        assert details.total_segments == 14
        assert client.get_json.call_count == 7

    def test_index_name_is_quoted(self, record):
        client = MagicMock()
        client.get_json.return_value = {}
        fetch_index_details(client, make_record("weird name"))
        paths = [call.args[0] for call in client.get_json.call_args_list]
        assert "weird%20name/_settings" in paths

    def test_all_failures_raise(self, record):
        client = MagicMock()
        client.get_json.side_effect = ClusterConnectionError("down")
        with pytest.raises(DetailFetchError):
            fetch_index_details(client, record)

    def test_unexpected_shape_raises(self, record):
        client = MagicMock()
        client.get_json.return_value = ["not", "a", "dict"]
        with pytest.raises(DetailFetchError):
            fetch_index_details(client, record)
