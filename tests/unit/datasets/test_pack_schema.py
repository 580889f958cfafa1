"""Tests for content pack manifest parsing and helpers."""

from __future__ import annotations

import copy

import pytest

from urban_offline.datasets.models import DatasetStatus, DatasetType
from urban_offline.datasets.pack_schema import (
    EXAMPLE_PACKS,
    MB,
    PackCategory,
    ResourceType,
    compare_versions,
    example_manifests,
    format_size,
    parse_manifest,
    validate_manifest,
)
from urban_offline.errors import InvalidInputError


def _medical() -> dict:
    return copy.deepcopy(EXAMPLE_PACKS[0])


def test_example_packs_are_valid() -> None:
    for data in EXAMPLE_PACKS:
        assert validate_manifest(data) == [], data["id"]
    assert [m.id for m in example_manifests()] == [d["id"] for d in EXAMPLE_PACKS]


def test_parse_manifest_fields() -> None:
    manifest = parse_manifest(_medical())
    assert manifest.id == "medical-core-v1"
    assert manifest.category is PackCategory.MEDICAL
    assert manifest.size == 15 * MB
    assert manifest.display_size == "15 MB"
    assert manifest.optional == ("medical-advanced-v1",)
    assert manifest.required == ()
    assert manifest.metadata.license == "CC-BY-SA-4.0"
    assert [r.type for r in manifest.resources] == [
        ResourceType.ARTICLE,
        ResourceType.ARTICLE,
        ResourceType.INK_STORY,
    ]


def test_new_record_from_manifest() -> None:
    record = parse_manifest(_medical()).new_record()
    assert record.type is DatasetType.PACK
    assert record.status is DatasetStatus.DOWNLOADING
    assert record.size == 15.0
    assert record.version == "1.2.0"
    assert record.category == "medical"
    assert record.resources == ["article", "article", "ink-story"]


@pytest.mark.parametrize(
    ("field", "value", "message"),
    [
        ("id", "", "Missing pack ID"),
        ("name", None, "Missing pack name"),
        ("version", "", "Missing version"),
        ("category", "weapons", "Invalid or missing category"),
        ("size", 0, "Invalid size"),
        ("size", True, "Invalid size"),
        ("metadata", {"source": "x"}, "Missing license information"),
        ("downloadUrl", "", "Missing download URL"),
    ],
)
def test_validate_manifest_reports_problem(field, value, message) -> None:
    data = _medical()
    data[field] = value
    assert message in validate_manifest(data)


def test_validate_manifest_checks_resources() -> None:
    data = _medical()
    data["resources"] = [{"id": "x", "type": "hologram", "path": "x.json"}, {"type": "article"}]
    errors = validate_manifest(data)
    assert "Unknown resource type 'hologram' in x" in errors
    assert "Resource entries need an id and a path" in errors


def test_parse_manifest_raises_with_every_error() -> None:
    data = _medical()
    data["id"] = ""
    data["downloadUrl"] = ""
    with pytest.raises(InvalidInputError, match="Missing pack ID, Missing download URL"):
        parse_manifest(data)


def test_parse_manifest_rejects_non_object() -> None:
    with pytest.raises(InvalidInputError):
        parse_manifest(["not", "a", "manifest"])


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (512, "512 B"),
        (1536, "1.5 KB"),
        (15 * MB, "15.0 MB"),
        (int(2.3 * 1024 * MB), "2.30 GB"),
    ],
)
def test_format_size(size, expected) -> None:
    assert format_size(size) == expected


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ("1.2.0", "1.1.9", 1),
        ("1.0", "1.0.0", 0),
        ("1.9.0", "1.10.0", -1),
        ("2.0.0-beta", "1.99.99", 1),
    ],
)
def test_compare_versions(a, b, expected) -> None:
    assert compare_versions(a, b) == expected
