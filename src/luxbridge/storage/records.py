"""Conversion between pydantic models and flat credential-store hashes."""

import json
import types
from datetime import datetime
from typing import Any, Self, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict
from pydantic.fields import FieldInfo


def _is_text_annotation(annotation: Any) -> bool:
    """True when every non-None member of the annotation is stored as plain text."""
    if get_origin(annotation) in (Union, types.UnionType):
        members = [a for a in get_args(annotation) if a is not type(None)]
        return bool(members) and all(_is_text_annotation(a) for a in members)
    return isinstance(annotation, type) and issubclass(annotation, (str, datetime))


def _is_optional(field: FieldInfo) -> bool:
    annotation = field.annotation
    return get_origin(annotation) in (Union, types.UnionType) and type(None) in get_args(
        annotation
    )


def encode_value(value: Any) -> str:
    """Strings are stored verbatim, None as an empty string, everything else as JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


class HashRecord(BaseModel):
    """Base class for models persisted as one credential-store hash."""

    model_config = ConfigDict(extra="ignore")

    def to_fields(self) -> dict[str, str]:
        data = self.model_dump(mode="json")
        return {name: encode_value(value) for name, value in data.items()}

    @classmethod
    def from_fields(cls, fields: dict[str, str]) -> Self:
        """Rebuild a record from stored fields; raises ValueError on corrupt data."""
        values: dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            if name not in fields:
                continue
            raw = fields[name]
            if raw == "" and _is_optional(field):
                values[name] = None
            elif _is_text_annotation(field.annotation):
                values[name] = raw
            else:
                values[name] = json.loads(raw)
        return cls.model_validate(values)
