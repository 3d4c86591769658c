"""Unit tests for emberguard/utils/ulid.py.

The ULID is the per-call scan_id bound into every log line of one pipeline call:
26 chars, Crockford Base32, unique across calls and threads.
"""

from __future__ import annotations

import threading

import pytest
import re2

from emberguard.utils.ulid import generate_ulid

# Crockford Base32 charset: 0-9 and A-Z, excluding I, L, O, U
ULID_CHARSET = re2.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")
ULID_LENGTH = 26


def test_generate_ulid_returns_string() -> None:
    assert isinstance(generate_ulid(), str)


def test_generate_ulid_length() -> None:
    result = generate_ulid()
    assert len(result) == ULID_LENGTH, f"Expected 26 chars, got {len(result)}: {result!r}"


def test_generate_ulid_charset() -> None:
    result = generate_ulid()
    assert ULID_CHARSET.search(result), (
        f"ULID {result!r} contains invalid characters. "
        "Expected only [0-9A-HJKMNP-TV-Z]."
    )


def test_generate_ulid_uppercase() -> None:
    result = generate_ulid()
    assert result == result.upper()


@pytest.mark.parametrize("count", [1_000])
def test_bulk_unique_and_valid(count: int) -> None:
    ulids = [generate_ulid() for _ in range(count)]
    assert len(set(ulids)) == count
    assert all(ULID_CHARSET.search(u) for u in ulids)


def test_time_prefix_non_decreasing() -> None:
    # The first 10 chars encode the millisecond timestamp.
    first = generate_ulid()
    second = generate_ulid()
    assert second[:10] >= first[:10]


def test_unique_across_threads() -> None:
    results: list[str] = []
    lock = threading.Lock()

    def worker() -> None:
        batch = [generate_ulid() for _ in range(200)]
        with lock:
            results.extend(batch)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 1_600
    assert len(set(results)) == 1_600
