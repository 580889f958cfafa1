"""Static catalog of installable regions and guides."""

from __future__ import annotations

from dataclasses import dataclass, field

from urban_offline.datasets.models import DatasetRecord, DatasetType

MAP_TILES_MODULE = "map-tiles"


@dataclass(frozen=True)
class DatasetDescriptor:
    id: str
    name: str
    type: DatasetType
    size_mb: float
    description: str = ""
    modules: tuple[str, ...] = ()
    coordinates: tuple[float, float] | None = None
    content: str | None = None
    content_format: str = "markdown"

    @property
    def has_map_tiles(self) -> bool:
        return MAP_TILES_MODULE in self.modules and self.coordinates is not None

    def new_record(self) -> DatasetRecord:
        return DatasetRecord(
            id=self.id,
            name=self.name,
            type=self.type,
            size=self.size_mb,
            description=self.description,
            modules=list(self.modules),
            coordinates=list(self.coordinates) if self.coordinates else None,
        )


REGIONS: tuple[DatasetDescriptor, ...] = (
    DatasetDescriptor(
        id="region-london",
        name="London, UK",
        type=DatasetType.REGION,
        size_mb=125,
        description="Greater London area. Includes hospitals, shelters, and offline map tiles.",
        modules=(MAP_TILES_MODULE, "places-medical", "places-shelter"),
        coordinates=(51.5074, -0.1278),
    ),
    DatasetDescriptor(
        id="region-nyc",
        name="New York City, USA",
        type=DatasetType.REGION,
        size_mb=140,
        description="NYC Metro area. Includes evacuation routes and medical centers.",
        modules=(MAP_TILES_MODULE, "places-medical", "places-evac"),
        coordinates=(40.7128, -74.0060),
    ),
    DatasetDescriptor(
        id="region-sf",
        name="San Francisco, USA",
        type=DatasetType.REGION,
        size_mb=95,
        description="Bay Area. Includes seismic safety zones and water points.",
        modules=(MAP_TILES_MODULE, "places-water", "places-seismic"),
        coordinates=(37.7749, -122.4194),
    ),
)

_FIRST_AID = """\
# Basic First Aid

## CPR
1. Call emergency services.
2. Push hard and fast in the center of the chest.

## Burns
1. Cool the burn with cool running water for at least 10 minutes.
2. Cover with cling film or a clean plastic bag.

## Bleeding
1. Apply pressure to the wound.
2. Elevate the injury if possible.
"""

_URBAN_SURVIVAL = """\
# Urban Survival

## Water
- Locate safe water sources.
- Boil water for at least 1 minute before drinking.

## Shelter
- Stay indoors if safe.
- Insulate a small room to conserve heat.
"""

GUIDES: tuple[DatasetDescriptor, ...] = (
    DatasetDescriptor(
        id="first-aid-basic",
        name="Basic First Aid",
        type=DatasetType.GUIDE,
        size_mb=0.5,
        description="Essential first aid procedures for common emergencies.",
        content=_FIRST_AID,
    ),
    DatasetDescriptor(
        id="survival-urban",
        name="Urban Survival Guide",
        type=DatasetType.GUIDE,
        size_mb=1.2,
        description="Tips for surviving in an urban environment without services.",
        content=_URBAN_SURVIVAL,
    ),
)


@dataclass
class Catalog:
    """Lookup over the installable descriptors. Tests pass their own entries."""

    entries: tuple[DatasetDescriptor, ...] = field(default_factory=lambda: REGIONS + GUIDES)

    def get(self, dataset_id: str) -> DatasetDescriptor | None:
        for entry in self.entries:
            if entry.id == dataset_id:
                return entry
        return None

    def of_type(self, dataset_type: DatasetType | None = None) -> list[DatasetDescriptor]:
        return [e for e in self.entries if dataset_type is None or e.type is dataset_type]
