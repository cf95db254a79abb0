"""Projection of provider auth data onto member fields."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class DottedPath:
    """Read a value by walking `info.first_name` style paths into the auth section."""

    path: str


@dataclass(frozen=True)
class Transform:
    """Compute a value from the full auth section."""

    func: Callable[[Mapping[str, Any]], Any]


MappingRule = DottedPath | Transform
FieldMapping = dict[str, MappingRule]


def parse_source_path(path: str, source: Mapping[str, Any]) -> Any:
    """Walk a dotted path through nested mappings; None on any missing segment."""
    value: Any = source
    for segment in path.split("."):
        if not isinstance(value, Mapping) or segment not in value:
            return None
        value = value[segment]
    return value


def _split_name(source: Mapping[str, Any]) -> list[str]:
    name = parse_source_path("info.name", source)
    if not isinstance(name, str):
        return []
    return name.split()


def get_first_name(source: Mapping[str, Any]) -> str | None:
    """First name from `info.first_name`, else the first word of `info.name`."""
    first_name = parse_source_path("info.first_name", source)
    if first_name:
        return first_name
    parts = _split_name(source)
    return parts[0] if parts else None


def get_last_name(source: Mapping[str, Any]) -> str | None:
    """Last name from `info.last_name`, else everything after the first word of `info.name`."""
    last_name = parse_source_path("info.last_name", source)
    if last_name:
        return last_name
    parts = _split_name(source)
    return " ".join(parts[1:]) if len(parts) > 1 else None


DEFAULT_MEMBER_MAPPER: dict[str, FieldMapping] = {
    "google": {
        "email": DottedPath("info.email"),
        "first_name": DottedPath("info.first_name"),
        "surname": DottedPath("info.last_name"),
        "locale": DottedPath("raw.locale"),
        "avatar_url": DottedPath("info.image"),
    },
    "facebook": {
        "email": DottedPath("info.email"),
        "first_name": DottedPath("info.first_name"),
        "surname": DottedPath("info.last_name"),
        "locale": DottedPath("raw.locale"),
    },
    "github": {
        "email": DottedPath("info.email"),
        "first_name": Transform(get_first_name),
        "surname": Transform(get_last_name),
        "avatar_url": DottedPath("info.image"),
    },
    "twitter": {
        "first_name": Transform(get_first_name),
        "surname": Transform(get_last_name),
        "avatar_url": DottedPath("info.image"),
    },
}


class FieldMapper:
    """Applies per-provider mapping tables to an auth section."""

    def __init__(self, mapper: dict[str, FieldMapping] | None = None):
        self.mapper = DEFAULT_MEMBER_MAPPER if mapper is None else mapper

    def mapping_for(self, provider: str) -> FieldMapping:
        return self.mapper.get(provider, {})

    def project(self, provider: str, auth_source: Mapping[str, Any]) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for member_field, rule in self.mapping_for(provider).items():
            if isinstance(rule, Transform):
                record[member_field] = rule.func(auth_source)
            elif isinstance(rule, DottedPath):
                record[member_field] = parse_source_path(rule.path, auth_source)
            else:
                raise TypeError(f"Unsupported mapping rule for {provider}.{member_field}: {rule!r}")
        return record
