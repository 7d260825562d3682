"""Unit tests for the ULID generation utility (httpmeta/utils/ulid.py).

Every NormalizedRequest carries a ULID request_id that correlates its log
entries; the IDs must be well formed and unique.
"""

from __future__ import annotations

import re

from httpmeta.utils.ulid import generate_ulid

# ─── ULID format constants ─────────────────────────────────────────────────────

# Crockford Base32 charset: 0-9 and A-Z, excluding I, L, O, U
ULID_CHARSET = re.compile(r"^[0-9A-HJKMNP-TV-Z]{26}$")


def test_generate_ulid_format() -> None:
    """generate_ulid() returns a 26-character Crockford Base32 str."""
    result = generate_ulid()
    assert isinstance(result, str)
    assert ULID_CHARSET.match(result), f"ULID {result!r} is malformed"


def test_generate_ulid_unique_1000() -> None:
    """1,000 generated ULIDs must all be unique."""
    ulids = [generate_ulid() for _ in range(1000)]
    assert len(set(ulids)) == 1000


def test_request_ids_are_ulids(make_request) -> None:
    """Each NormalizedRequest gets its own ULID request_id."""
    first, second = make_request(), make_request()
    assert ULID_CHARSET.match(first.request_id)
    assert first.request_id != second.request_id
