"""Tests for the content-driven semantic version policy."""

from __future__ import annotations

import pytest

from mpe.exceptions import InvalidInputError
from mpe.versioning import (
    change_magnitude,
    latest_version,
    parse_version,
    propose_next_version,
)


class TestParseVersion:
    def test_parse(self) -> None:
        assert parse_version("1.2.3") == (1, 2, 3)

    @pytest.mark.parametrize("bad", ["", "1.0", "v1.0.0", "1.0.0-beta", "01.0.0", "a.b.c"])
    def test_invalid_raises(self, bad: str) -> None:
        with pytest.raises(InvalidInputError):
            parse_version(bad)


class TestChangeMagnitude:
    def test_identical(self) -> None:
        assert change_magnitude("a b c", "a b c") == 0.0

    def test_both_empty(self) -> None:
        assert change_magnitude("", "   ") == 0.0

    def test_disjoint(self) -> None:
        assert change_magnitude("a b", "c d") == 1.0

    def test_uses_longer_token_count(self) -> None:
        # 4 shared words out of max(4, 11) tokens
        old = "the quick brown fox"
        new = "the quick brown fox jumps over the lazy dog eagerly today"
        assert change_magnitude(old, new) == pytest.approx(1 - 4 / 11)


class TestProposeNextVersion:
    def test_identical_after_trim_keeps_version(self) -> None:
        assert propose_next_version("1.0.0", "A", "  A \n") == "1.0.0"

    def test_large_change_bumps_minor(self) -> None:
        result = propose_next_version(
            "1.0.0",
            "the quick brown fox",
            "the quick brown fox jumps over the lazy dog eagerly today",
        )
        assert result == "1.1.0"

    def test_minor_bump_resets_patch(self) -> None:
        assert propose_next_version("1.2.7", "a b", "c d") == "1.3.0"

    def test_small_change_bumps_patch(self) -> None:
        old = "one two three four five six seven eight nine ten"
        new = "one two three four five six seven eight nine eleven"
        assert propose_next_version("1.0.0", old, new) == "1.0.1"

    def test_whitespace_only_reflow_bumps_patch(self) -> None:
        # Same words, different spacing: not identical after trim, magnitude 0.
        assert propose_next_version("2.0.0", "a  b", "a b") == "2.0.1"

    def test_never_decreases(self) -> None:
        contents = ["a", "a b", "x y z", "x y z w", "completely new words here"]
        version = "1.0.0"
        for old, new in zip(contents, contents[1:]):
            nxt = propose_next_version(version, old, new)
            assert parse_version(nxt) > parse_version(version)
            version = nxt


class TestLatestVersion:
    def test_orders_numerically(self) -> None:
        assert latest_version(["1.9.0", "1.10.0", "1.2.5"]) == "1.10.0"

    def test_empty_raises(self) -> None:
        with pytest.raises(InvalidInputError):
            latest_version([])
