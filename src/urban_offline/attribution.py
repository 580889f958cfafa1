"""Licence and attribution records for installed content, keyed by id prefix."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Attribution:
    source: str
    license: str
    attribution_text: str
    link: str | None = None


WIKIMED = Attribution(
    source="WikiProject Medicine / Kiwix",
    license="CC-BY-SA 3.0",
    attribution_text=(
        "Content from Wikipedia, controlled by WikiProject Medicine. "
        "Available under CC-BY-SA 3.0."
    ),
    link="https://en.wikipedia.org/wiki/Wikipedia:WikiProject_Medicine",
)

ENVIRONMENT_AGENCY = Attribution(
    source="Environment Agency",
    license="OGL v3.0",
    attribution_text=(
        "Contains Environment Agency data licensed under the Open Government Licence v3.0."
    ),
    link="https://environment.data.gov.uk/",
)

OPENSTREETMAP = Attribution(
    source="OpenStreetMap",
    license="ODbL 1.0",
    attribution_text="© OpenStreetMap contributors",
    link="https://www.openstreetmap.org/copyright",
)

MIXED = Attribution(
    source="Various",
    license="Mixed",
    attribution_text="See individual content items for specific licensing.",
    link=None,
)

# First matching prefix wins.
_PREFIXES: tuple[tuple[str, Attribution], ...] = (
    ("wiki-", WIKIMED),
    ("flood-", ENVIRONMENT_AGENCY),
    ("region-", OPENSTREETMAP),
    ("tile-", OPENSTREETMAP),
)


def attribution_for(content_id: str) -> Attribution:
    """Return the attribution for *content_id*; unknown prefixes get the mixed record."""
    for prefix, record in _PREFIXES:
        if content_id.startswith(prefix):
            return record
    return MIXED


def all_attributions() -> list[Attribution]:
    """Every distinct attribution record, for a credits screen."""
    return [WIKIMED, ENVIRONMENT_AGENCY, OPENSTREETMAP, MIXED]
