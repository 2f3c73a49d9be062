"""Container state as reported by ``runc state`` and ``runc list``."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_MISSING = object()

_RFC3339 = re.compile(
    r"(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d{1,9}))?"
    r"(?:(Z)|([+-])(\d{2}):(\d{2}))"
)


def _parse_rfc3339(text: str) -> datetime:
    match = _RFC3339.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid RFC 3339 timestamp: {text!r}")
    year, month, day, hour, minute, second, fraction, zulu, sign, off_h, off_m = match.groups()
    if zulu:
        tz = timezone.utc
    else:
        offset = timedelta(hours=int(off_h), minutes=int(off_m))
        tz = timezone(-offset if sign == "-" else offset)
    micros = int((fraction or "0").ljust(6, "0")[:6])
    return datetime(
        int(year), int(month), int(day), int(hour), int(minute), int(second), micros, tzinfo=tz
    )


def _format_rfc3339(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
    )
    if moment.microsecond:
        text += "." + f"{moment.microsecond:06d}".rstrip("0")
    offset = moment.utcoffset() or timedelta(0)
    if not offset:
        return text + "Z"
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{text}{sign}{minutes // 60:02d}:{minutes % 60:02d}"


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if isinstance(name, str) and name.lower() == lowered:
            return value
    return _MISSING


def _string(data: Mapping[str, Any], key: str) -> str | None:
    value = _lookup(data, key)
    if value is _MISSING or value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{key}: expected a string, got {value!r}")
    return value


@dataclass
class Container:
    """Information about one runc container."""

    id: str = ""
    pid: int = 0
    status: str = ""
    bundle: str = ""
    rootfs: str = ""
    created: datetime = _ZERO_TIME
    annotations: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Container:
        """Build a container from a decoded JSON object."""
        if not isinstance(data, Mapping):
            raise TypeError("container: expected a JSON object")
        container = cls()
        for key in ("id", "status", "bundle", "rootfs"):
            value = _string(data, key)
            if value is not None:
                setattr(container, key, value)

        pid = _lookup(data, "pid")
        if pid is not _MISSING and pid is not None:
            if isinstance(pid, bool) or not isinstance(pid, int):
                raise TypeError(f"pid: expected an integer, got {pid!r}")
            container.pid = pid

        created = _string(data, "created")
        if created is not None:
            container.created = _parse_rfc3339(created)

        annotations = _lookup(data, "annotations")
        if annotations is not _MISSING and annotations is not None:
            if not isinstance(annotations, Mapping) or not all(
                isinstance(v, str) for v in annotations.values()
            ):
                raise TypeError("annotations: expected an object of strings")
            container.annotations = dict(annotations)
        return container

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form used by runc."""
        return {
            "id": self.id,
            "pid": self.pid,
            "status": self.status,
            "bundle": self.bundle,
            "rootfs": self.rootfs,
            "created": _format_rfc3339(self.created),
            "annotations": dict(self.annotations),
        }