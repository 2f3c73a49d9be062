"""Events and resource statistics streamed by ``runc events``."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any, Optional

_UINT = "uint"
_STR = "str"
_MISSING = object()
_UINT64_LIMIT = 1 << 64


def _meta(key: str, kind: Any, omitempty: bool, container: str | None = None) -> dict[str, Any]:
    return {"key": key, "kind": kind, "omitempty": omitempty, "container": container}


def _uint(key: str, *, omitempty: bool = False) -> Any:
    return field(default=0, metadata=_meta(key, _UINT, omitempty))


def _str(key: str, *, omitempty: bool = False) -> Any:
    return field(default="", metadata=_meta(key, _STR, omitempty))


def _nested(key: str, model: type, *, omitempty: bool = False) -> Any:
    return field(default_factory=model, metadata=_meta(key, model, omitempty))


def _optional(key: str, model: type, *, omitempty: bool = False) -> Any:
    return field(default=None, metadata=_meta(key, model, omitempty))


def _list(key: str, kind: Any, *, omitempty: bool = False) -> Any:
    return field(default_factory=list, metadata=_meta(key, kind, omitempty, "list"))


def _map(key: str, kind: Any, *, omitempty: bool = False) -> Any:
    return field(default_factory=dict, metadata=_meta(key, kind, omitempty, "map"))


def _lookup(data: Mapping[str, Any], key: str) -> Any:
    if key in data:
        return data[key]
    lowered = key.lower()
    for name, value in data.items():
        if isinstance(name, str) and name.lower() == lowered:
            return value
    return _MISSING


def _zero(kind: Any) -> Any:
    if kind == _UINT:
        return 0
    if kind == _STR:
        return ""
    return kind()


def _decode_item(value: Any, kind: Any, key: str) -> Any:
    if value is None:
        return _zero(kind)
    if kind == _UINT:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{key}: expected an unsigned integer, got {value!r}")
        if not 0 <= value < _UINT64_LIMIT:
            raise ValueError(f"{key}: {value} is out of range for an unsigned 64-bit integer")
        return value
    if kind == _STR:
        if not isinstance(value, str):
            raise TypeError(f"{key}: expected a string, got {value!r}")
        return value
    return kind.from_dict(value)


def _decode(value: Any, meta: Mapping[str, Any]) -> Any:
    key, kind = meta["key"], meta["kind"]
    if meta["container"] == "list":
        if not isinstance(value, list):
            raise TypeError(f"{key}: expected a JSON array")
        return [_decode_item(item, kind, key) for item in value]
    if meta["container"] == "map":
        if not isinstance(value, Mapping):
            raise TypeError(f"{key}: expected a JSON object")
        return {name: _decode_item(item, kind, key) for name, item in value.items()}
    return _decode_item(value, kind, key)


def _encode_item(value: Any) -> Any:
    if isinstance(value, _Model):
        return value.to_dict()
    return value


def _is_empty(value: Any, meta: Mapping[str, Any]) -> bool:
    if value is None:
        return True
    if meta["container"] is not None:
        return not value
    if isinstance(value, _Model):
        return False
    return value in (0, "")


class _Model:
    """JSON (de)serialisation driven by field metadata."""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Any:
        """Build an instance from a decoded JSON object; ``None`` gives zero values."""
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise TypeError(f"{cls.__name__}: expected a JSON object")
        values = {}
        for spec in fields(cls):  # type: ignore[arg-type]
            meta = spec.metadata
            if "key" not in meta:
                continue
            raw = _lookup(data, meta["key"])
            if raw is _MISSING or raw is None:
                continue
            values[spec.name] = _decode(raw, meta)
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form, leaving out empty ``omitempty`` fields."""
        out: dict[str, Any] = {}
        for spec in fields(self):  # type: ignore[arg-type]
            meta = spec.metadata
            if "key" not in meta:
                continue
            value = getattr(self, spec.name)
            if meta["omitempty"] and _is_empty(value, meta):
                continue
            if meta["container"] == "list":
                out[meta["key"]] = [_encode_item(v) for v in value] if value else None
            elif meta["container"] == "map":
                out[meta["key"]] = {k: _encode_item(v) for k, v in value.items()} if value else None
            else:
                out[meta["key"]] = _encode_item(value)
        return out


@dataclass
class Hugetlb(_Model):
    """Hugetlb usage for one page size."""

    usage: int = _uint("usage", omitempty=True)
    max: int = _uint("max", omitempty=True)
    failcnt: int = _uint("failcnt")


@dataclass
class BlkioEntry(_Model):
    """One block-IO counter for a device and operation."""

    major: int = _uint("major", omitempty=True)
    minor: int = _uint("minor", omitempty=True)
    op: str = _str("op", omitempty=True)
    value: int = _uint("value", omitempty=True)


@dataclass
class Blkio(_Model):
    """Block-IO statistics."""

    io_service_bytes_recursive: list[BlkioEntry] = _list(
        "ioServiceBytesRecursive", BlkioEntry, omitempty=True
    )
    io_serviced_recursive: list[BlkioEntry] = _list(
        "ioServicedRecursive", BlkioEntry, omitempty=True
    )
    io_queued_recursive: list[BlkioEntry] = _list("ioQueueRecursive", BlkioEntry, omitempty=True)
    io_service_time_recursive: list[BlkioEntry] = _list(
        "ioServiceTimeRecursive", BlkioEntry, omitempty=True
    )
    io_wait_time_recursive: list[BlkioEntry] = _list(
        "ioWaitTimeRecursive", BlkioEntry, omitempty=True
    )
    io_merged_recursive: list[BlkioEntry] = _list("ioMergedRecursive", BlkioEntry, omitempty=True)
    io_time_recursive: list[BlkioEntry] = _list("ioTimeRecursive", BlkioEntry, omitempty=True)
    sectors_recursive: list[BlkioEntry] = _list("sectorsRecursive", BlkioEntry, omitempty=True)


@dataclass
class Pids(_Model):
    """Process count and limit."""

    current: int = _uint("current", omitempty=True)
    limit: int = _uint("limit", omitempty=True)


@dataclass
class Throttling(_Model):
    """CPU throttling counters."""

    periods: int = _uint("periods", omitempty=True)
    throttled_periods: int = _uint("throttledPeriods", omitempty=True)
    throttled_time: int = _uint("throttledTime", omitempty=True)


@dataclass
class CpuUsage(_Model):
    """CPU time in nanoseconds."""

    total: int = _uint("total", omitempty=True)
    percpu: list[int] = _list("percpu", _UINT, omitempty=True)
    kernel: int = _uint("kernel")
    user: int = _uint("user")


@dataclass
class Cpu(_Model):
    """CPU usage and throttling."""

    usage: CpuUsage = _nested("usage", CpuUsage, omitempty=True)
    throttling: Throttling = _nested("throttling", Throttling, omitempty=True)


@dataclass
class MemoryEntry(_Model):
    """Usage figures for one kind of memory."""

    limit: int = _uint("limit")
    usage: int = _uint("usage", omitempty=True)
    max: int = _uint("max", omitempty=True)
    failcnt: int = _uint("failcnt")


@dataclass
class Memory(_Model):
    """Memory statistics."""

    cache: int = _uint("cache", omitempty=True)
    usage: MemoryEntry = _nested("usage", MemoryEntry, omitempty=True)
    swap: MemoryEntry = _nested("swap", MemoryEntry, omitempty=True)
    kernel: MemoryEntry = _nested("kernel", MemoryEntry, omitempty=True)
    kernel_tcp: MemoryEntry = _nested("kernelTCP", MemoryEntry, omitempty=True)
    raw: dict[str, int] = _map("raw", _UINT, omitempty=True)


@dataclass
class NetworkInterface(_Model):
    """Traffic counters for one network interface."""

    name: str = _str("Name")
    rx_bytes: int = _uint("RxBytes")
    rx_packets: int = _uint("RxPackets")
    rx_errors: int = _uint("RxErrors")
    rx_dropped: int = _uint("RxDropped")
    tx_bytes: int = _uint("TxBytes")
    tx_packets: int = _uint("TxPackets")
    tx_errors: int = _uint("TxErrors")
    tx_dropped: int = _uint("TxDropped")


@dataclass
class Stats(_Model):
    """Resource statistics for a container."""

    cpu: Cpu = _nested("cpu", Cpu)
    memory: Memory = _nested("memory", Memory)
    pids: Pids = _nested("pids", Pids)
    blkio: Blkio = _nested("blkio", Blkio)
    hugetlb: dict[str, Hugetlb] = _map("hugetlb", Hugetlb)
    network_interfaces: list[NetworkInterface] = _list("network_interfaces", NetworkInterface)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Stats:
        """Build statistics from the ``data`` object of a runc event."""
        return super().from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON object form of the statistics."""
        return super().to_dict()


@dataclass
class Event(_Model):
    """One event from runc.

    When ``type`` is ``"error"`` the event could not be decoded and ``err``
    holds the reason.
    """

    type: str = _str("type")
    id: str = _str("id")
    stats: Optional[Stats] = _optional("data", Stats, omitempty=True)
    err: Optional[BaseException] = field(default=None, compare=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> Event:
        """Build an event from one decoded JSON object printed by ``runc events``."""
        return super().from_dict(data)