#!/usr/bin/env python3
"""
Snapshot codec for the durable slot.

The slot holds the complete SQLite image as a JSON array of byte values,
e.g. ``[83, 81, 76, ...]``.
"""
import json

from .errors import SnapshotDecodeError

SQLITE_HEADER = b"SQLite format 3\x00"


def encode_snapshot(image: bytes) -> str:
    """Encode a database image for storage in the slot."""
    return json.dumps(list(image), separators=(",", ":"))


def decode_snapshot(payload: str | bytes) -> bytes:
    """Decode a slot payload back into a database image.

    Raises:
        SnapshotDecodeError: payload is not a JSON byte array holding an
            SQLite image.
    """
    try:
        values = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise SnapshotDecodeError(f"slot payload is not JSON: {e}") from e

    if not isinstance(values, list):
        raise SnapshotDecodeError("slot payload is not a byte array")

    try:
        image = bytes(values)
    except (TypeError, ValueError) as e:
        raise SnapshotDecodeError(f"slot payload holds non-byte values: {e}") from e

    if not image.startswith(SQLITE_HEADER):
        raise SnapshotDecodeError("slot payload is not an SQLite database image")
    return image
