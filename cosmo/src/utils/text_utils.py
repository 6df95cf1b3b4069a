"""
Cosmo - Record Text Utilities
==============================
Helpers that turn stored records into text, for embedding and for
prompt context.

Records come straight from MongoDB and may hold BSON-only values
(``ObjectId``, ``datetime``, ``Decimal128``), so serialization goes
through ``bson.json_util`` rather than plain ``json``.

These utilities are stateless and side-effect-free: input records are
never mutated.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from bson import json_util

Record = dict[str, Any]

_COMPACT_SEPARATORS = (",", ":")


def strip_fields(record: Mapping[str, Any], fields: Iterable[str]) -> Record:
    """Return a shallow copy of *record* without *fields*."""
    excluded = set(fields)
    return {key: value for key, value in record.items() if key not in excluded}


def serialize_record(record: Mapping[str, Any], exclude: Iterable[str] = (), sort_keys: bool = True) -> str:
    """
    Serialize *record* to compact JSON text.

    Keys are sorted by default so the same record always produces the
    same text across runs (stable re-embeds).  Fields named in
    *exclude* are dropped before serialization.
    """
    cleaned = strip_fields(record, exclude)
    return json_util.dumps(cleaned, sort_keys=sort_keys, separators=_COMPACT_SEPARATORS, ensure_ascii=False)
