from __future__ import annotations

import pytest

from adx_batch.core.log_buffer import LogBuffer


def test_append_keeps_only_the_most_recent_lines_in_order() -> None:
    buffer = LogBuffer()
    for i in range(500):
        buffer.append(f"line {i}")

    assert len(buffer) == 400
    assert buffer.lines == [f"line {i}" for i in range(100, 500)]


def test_append_never_exceeds_a_custom_capacity() -> None:
    buffer = LogBuffer(capacity=3)
    for line in "abcde":
        buffer.append(line)
        assert len(buffer) <= 3

    assert buffer.lines == ["c", "d", "e"]


def test_duplicates_are_kept_and_clear_empties_the_buffer() -> None:
    buffer = LogBuffer()
    buffer.append("same")
    buffer.append("same")
    assert buffer.lines == ["same", "same"]

    buffer.clear()
    assert buffer.lines == []
    assert len(buffer) == 0


def test_tail_returns_latest_lines_oldest_first() -> None:
    buffer = LogBuffer()
    for line in ["one", "two", "three"]:
        buffer.append(line)

    assert buffer.tail(2) == ["two", "three"]
    assert buffer.tail(10) == ["one", "two", "three"]
    assert buffer.tail(0) == []


def test_lines_is_a_snapshot() -> None:
    buffer = LogBuffer()
    buffer.append("first")
    snapshot = buffer.lines
    buffer.append("second")

    assert snapshot == ["first"]


def test_capacity_must_be_positive() -> None:
    with pytest.raises(ValueError):
        LogBuffer(capacity=0)
