from datetime import datetime, timedelta, timezone

import pytest

from runcclient.container import Container

SAMPLE = {
    "ociVersion": "1.0.2",
    "id": "web",
    "pid": 4242,
    "status": "running",
    "bundle": "/run/bundles/web",
    "rootfs": "/run/bundles/web/rootfs",
    "created": "2023-05-06T07:08:09.5Z",
    "annotations": {"org.example.role": "frontend"},
}


def test_from_dict_reads_fields():
    container = Container.from_dict(SAMPLE)
    assert container.id == "web"
    assert container.pid == 4242
    assert container.status == "running"
    assert container.bundle == "/run/bundles/web"
    assert container.rootfs == "/run/bundles/web/rootfs"
    assert container.annotations == {"org.example.role": "frontend"}


def test_created_is_parsed():
    container = Container.from_dict(SAMPLE)
    assert container.created == datetime(2023, 5, 6, 7, 8, 9, 500000, tzinfo=timezone.utc)


def test_to_dict_keeps_timestamp_text():
    assert Container.from_dict(SAMPLE).to_dict()["created"] == SAMPLE["created"]


def test_round_trip():
    container = Container.from_dict(SAMPLE)
    assert Container.from_dict(container.to_dict()) == container


def test_missing_fields_take_zero_values():
    container = Container.from_dict({"id": "x"})
    assert container.pid == 0
    assert container.annotations == {}
    assert container.created == datetime(1, 1, 1, tzinfo=timezone.utc)


def test_zero_time_serialisation():
    assert Container().to_dict()["created"] == "0001-01-01T00:00:00Z"


def test_keys_are_case_insensitive():
    container = Container.from_dict({"ID": "upper", "Pid": 9})
    assert (container.id, container.pid) == ("upper", 9)


def test_offset_round_trip():
    text = "2023-01-02T03:04:05+02:00"
    container = Container.from_dict({"created": text})
    assert container.created.utcoffset() == timedelta(hours=2)
    assert container.to_dict()["created"] == text


def test_nanoseconds_are_truncated_to_prefix():
    text = "2023-01-02T03:04:05.123456789Z"
    out = Container.from_dict({"created": text}).to_dict()["created"]
    assert out.endswith("Z")
    assert text.startswith(out[:-1])


def test_null_annotations_become_empty():
    assert Container.from_dict({"annotations": None}).annotations == {}


def test_invalid_timestamp():
    with pytest.raises(ValueError):
        Container.from_dict({"created": "yesterday"})


def test_wrong_pid_type():
    with pytest.raises(TypeError):
        Container.from_dict({"pid": "12"})


def test_not_an_object():
    with pytest.raises(TypeError):
        Container.from_dict(["web"])