"""Tests for the attribution registry."""

from __future__ import annotations

import pytest

from urban_offline.attribution import (
    ENVIRONMENT_AGENCY,
    MIXED,
    OPENSTREETMAP,
    WIKIMED,
    all_attributions,
    attribution_for,
)


@pytest.mark.parametrize(
    ("content_id", "expected"),
    [
        ("wiki-hypothermia", WIKIMED),
        ("flood-zone-12", ENVIRONMENT_AGENCY),
        ("region-london", OPENSTREETMAP),
        ("tile-12-2046-1361", OPENSTREETMAP),
        ("first-aid-basic", MIXED),
        ("", MIXED),
        ("Wiki-upper", MIXED),
    ],
)
def test_attribution_for(content_id: str, expected) -> None:
    assert attribution_for(content_id) is expected


def test_records_carry_licences() -> None:
    assert WIKIMED.license == "CC-BY-SA 3.0"
    assert ENVIRONMENT_AGENCY.license == "OGL v3.0"
    assert OPENSTREETMAP.attribution_text == "© OpenStreetMap contributors"
    assert MIXED.link is None


def test_all_attributions_distinct() -> None:
    records = all_attributions()
    assert len(records) == 4
    assert len({r.source for r in records}) == 4
