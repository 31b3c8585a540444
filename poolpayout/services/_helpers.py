"""Shared utilities for the service layer."""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from uuid import uuid4

Serializable = Mapping[str, object] | list[object]


def new_id() -> str:
    return str(uuid4())


def iso_from_timestamp(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).isoformat()


def load_json_list(raw: str | None) -> list[object]:
    """Deserialize a JSON TEXT column holding a list (merkle proofs)."""
    if not raw:
        return []
    result: object = json.loads(raw)
    if isinstance(result, list):
        return list(result)
    return []


def dump_json(obj: Serializable) -> str:
    return json.dumps(obj, default=str)
