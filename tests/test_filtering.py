"""Tests for the filter language: grammar, type checking and FilterState."""

import pytest

from elastic_ingest_top.errors import FilterCompileError
from elastic_ingest_top.filtering import FilterState, compile_filter, tokenize
from elastic_ingest_top.models import Health

from conftest import make_record


@pytest.fixture
def records():
    return [
        make_record("logs-app", doc_count=5000, size_bytes=2048, rate_per_sec=12.5, health=Health.GREEN),
        make_record("metrics-node", doc_count=10, size_bytes=100, rate_per_sec=0.0, health=Health.YELLOW),
        make_record(".kibana_1", doc_count=3, size_bytes=10, rate_per_sec=0.0, health=Health.RED, shard_count=2),
    ]


def matching(expression, records):
    predicate = compile_filter(expression)
    return [record.name for record in records if predicate(record)]


class TestGrammar:
    @pytest.mark.parametrize(
        "expression, expected",
        [
            ('name contains "logs"', ["logs-app"]),
            ('contains(name, "metrics")', ["metrics-node"]),
            ('contains(.name, "metrics")', ["metrics-node"]),
            ('startswith(name, ".")', [".kibana_1"]),
            ('name endswith "node"', ["metrics-node"]),
            ('matches(name, "^[a-z]+-")', ["logs-app", "metrics-node"]),
            ("rate_per_sec > 10", ["logs-app"]),
            ("doc_count >= 10 and size_bytes < 1000", ["metrics-node"]),
            ('health == "red" || health == "yellow"', ["metrics-node", ".kibana_1"]),
            ('not (health == "green")', ["metrics-node", ".kibana_1"]),
            ('!name contains "-"', [".kibana_1"]),
            ("shard_count != 1", [".kibana_1"]),
            ("rate_per_sec == 0 AND doc_count < 5", [".kibana_1"]),
            ("true", ["logs-app", "metrics-node", ".kibana_1"]),
            ("false or doc_count > 4999", ["logs-app"]),
            ("1.5e1 > rate_per_sec and rate_per_sec > 0", ["logs-app"]),
            ("'logs-app' == name", ["logs-app"]),
            ('health == "Yellow"', ["metrics-node"]),
            ('"RED" == health', [".kibana_1"]),
        ],
    )
    def test_expressions(self, records, expression, expected):
        assert matching(expression, records) == expected

    def test_and_binds_tighter_than_or(self, records):
        expression = 'name contains "logs" or name contains "metrics" and doc_count > 100'
        assert matching(expression, records) == ["logs-app"]

    def test_escaped_quotes(self):
        predicate = compile_filter(r'name == "say \"hi\""')
        assert predicate(make_record('say "hi"'))

    def test_regex_escapes_survive(self, records):
        assert matching(r'matches(name, "^\.kib")', records) == [".kibana_1"]

    def test_empty_expression_compiles_to_none(self):
        assert compile_filter("") is None
        assert compile_filter("   ") is None

    def test_tokenize_positions(self):
        tokens = tokenize('name != "x"')
        assert [(t.kind, t.position) for t in tokens] == [("IDENT", 0), ("OP", 5), ("STRING", 8), ("EOF", 11)]


class TestCompileErrors:
    @pytest.mark.parametrize(
        "expression",
        [
            "nmae == 'x'",               # unknown field
            'name > "a"',                # ordering on strings
            "doc_count == 'many'",       # number vs string
            'health == 1',               # string vs number
            'contains(doc_count, "1")',  # function on a number
            'name like "x"',             # unknown operator
            'name == "open',             # unterminated string
            'matches(name, "[")',        # bad regex
            "(doc_count > 1",            # missing paren
            "doc_count > 1 )",           # stray token
            "doc_count >",               # missing operand
            "name @ 'x'",                # bad character
            'health == "purple"',        # not a health value
            "and",
        ],
    )
    def test_rejected(self, expression):
        with pytest.raises(FilterCompileError):
            compile_filter(expression)

    def test_error_carries_position(self):
        with pytest.raises(FilterCompileError) as excinfo:
            compile_filter("doc_count > 1 and nope == 2")
        assert excinfo.value.position == 18
        assert "unknown field 'nope'" in str(excinfo.value)

    @pytest.mark.parametrize(
        "expression",
        [
            "(" * 400 + 'name == "a"' + ")" * 400,
            "not " * 2000 + "true",
            "!" * 2000 + "true",
        ],
    )
    def test_deep_nesting_is_a_compile_error(self, expression):
        with pytest.raises(FilterCompileError, match="nested too deeply"):
            compile_filter(expression)

    def test_deep_nesting_keeps_previous_filter(self, records):
        state = FilterState()
        state.set_text('name contains "logs"')
        assert not state.set_text("(" * 400 + "true" + ")" * 400)
        assert "nested too deeply" in state.error
        assert [r.name for r in records if state.matches(r)] == ["logs-app"]

    def test_moderate_nesting_compiles(self, records):
        expression = "(" * 50 + "not " * 41 + 'name == "logs-app"' + ")" * 50
        assert matching(expression, records) == ["metrics-node", ".kibana_1"]


class TestFilterState:
    def test_empty_matches_everything(self, records):
        state = FilterState()
        assert all(state.matches(record) for record in records)
        assert state.valid

    def test_failed_compile_keeps_last_good_predicate(self, records):
        state = FilterState()
        assert state.set_text('name contains "logs"') is True
        before = [state.matches(record) for record in records]

        assert state.set_text('name contains "logs" and (') is False
        assert state.valid is False
        assert state.text == 'name contains "logs" and ('
        assert state.active_source == 'name contains "logs"'
        assert [state.matches(record) for record in records] == before

    def test_invalid_with_no_previous_filter_matches_all(self, records):
        state = FilterState()
        state.set_text("rate_per_sec >")
        assert all(state.matches(record) for record in records)

    def test_fixing_the_text_applies_it(self, records):
        state = FilterState()
        state.set_text("doc_count >")
        state.set_text("doc_count > 5")
        assert state.valid
        assert [r.name for r in records if state.matches(r)] == ["logs-app", "metrics-node"]

    def test_edit_mode(self):
        state = FilterState()
        state.enter()
        assert state.editing
        state.set_text("doc_count > 1")
        state.exit()
        assert not state.editing
        assert state.text == "doc_count > 1"

    def test_clear(self, records):
        state = FilterState()
        state.enter()
        state.set_text("doc_count > 1000")
        state.clear()
        assert state.text == ""
        assert not state.editing
        assert all(state.matches(record) for record in records)
