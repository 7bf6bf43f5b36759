from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_id(prefix: str) -> str:
    return f"{prefix}_{int(utc_now().timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


class WireModel(BaseModel):
    """Base model serialised with camelCase keys, as the web client expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
