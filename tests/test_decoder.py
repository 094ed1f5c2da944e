"""Tests for the get-all reply decoder."""

from __future__ import annotations

import logging

import pytest
from hypothesis import given, strategies as st

from pdns_recursor_stats.protocol.decoder import decode_response, parse_response


def test_well_formed_response() -> None:
    assert parse_response("a\t1\nb\t2\n") == {"a": 1, "b": 2}


def test_invalid_value_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    """A non-integer value skips only its own line and is reported."""

    with caplog.at_level(logging.WARNING):
        result = decode_response("a\tNaN\nb\t2\n")

    assert result.fields == {"b": 2}
    assert len(result.skipped) == 1
    assert result.skipped[0].line == "a\tNaN"
    assert "Error parsing integer for metric" in caplog.text


def test_line_without_tab_is_ignored() -> None:
    result = decode_response("onlykey\n")
    assert result.fields == {}
    assert result.skipped == []


def test_trailing_segment_is_discarded() -> None:
    """Only newline-terminated lines are decoded."""

    assert parse_response("a\t1\nb\t2") == {"a": 1}
    assert parse_response("") == {}


def test_last_duplicate_wins() -> None:
    assert parse_response("a\t1\na\t5\n") == {"a": 5}


def test_extra_fields_are_ignored() -> None:
    assert parse_response("a\t7\tunused\n") == {"a": 7}


@pytest.mark.parametrize(
    "value",
    ["", " 1", "1.5", "0x10", "1_000", "9223372036854775808", "-9223372036854775809"],
)
def test_values_outside_int64_syntax_are_skipped(value: str) -> None:
    result = decode_response(f"a\t{value}\n")
    assert result.fields == {}
    assert len(result.skipped) == 1


def test_int64_bounds_and_signs() -> None:
    text = "max\t9223372036854775807\nmin\t-9223372036854775808\nplus\t+3\n"
    assert parse_response(text) == {
        "max": 2**63 - 1,
        "min": -(2**63),
        "plus": 3,
    }


_names = st.text(
    alphabet=st.characters(exclude_characters="\t\n", exclude_categories=("Cs",)),
    min_size=1,
    max_size=20,
)


@given(
    counters=st.dictionaries(
        _names, st.integers(min_value=-(2**63), max_value=2**63 - 1), max_size=30
    )
)
def test_decodes_every_formatted_counter(counters: dict[str, int]) -> None:
    text = "".join(f"{name}\t{value}\n" for name, value in counters.items())
    assert parse_response(text) == counters
