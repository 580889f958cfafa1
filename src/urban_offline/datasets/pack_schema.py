"""Content pack manifests: parsing, validation and the built-in examples.

A pack manifest describes one downloadable archive:

    id, name, description, category, version, size (bytes), sizeDisplay,
    tags, icon, resources[{id, type, path, size, checksum}],
    dependencies{required, optional}, metadata{source, license, licenseUrl,
    attribution, lastVerified}, checksum (SHA-256 hex), downloadUrl, updatedAt
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from urban_offline.datasets.models import DatasetRecord, DatasetType
from urban_offline.errors import InvalidInputError

MB = 1024 * 1024
GB = 1024 * MB


class PackCategory(str, enum.Enum):
    MEDICAL = "medical"
    LEGAL = "legal"
    SURVIVAL = "survival"
    REGION = "region"
    AI_MODEL = "ai-model"


class ResourceType(str, enum.Enum):
    ARTICLE = "article"
    GUIDE = "guide"
    INK_STORY = "ink-story"
    MAP_TILES = "map-tiles"
    PLACES = "places"
    MODEL = "model"
    VECTOR_INDEX = "vector-index"


class PackStatus(str, enum.Enum):
    NOT_INSTALLED = "not-installed"
    DOWNLOADING = "downloading"
    INSTALLED = "installed"
    UPDATE_AVAILABLE = "update-available"
    ERROR = "error"


@dataclass(frozen=True)
class PackResource:
    id: str
    type: ResourceType
    path: str
    size: int = 0
    checksum: str = ""


@dataclass(frozen=True)
class PackMetadata:
    source: str = ""
    license: str = ""
    license_url: str = ""
    attribution: str = ""
    last_verified: str = ""


@dataclass(frozen=True)
class PackManifest:
    id: str
    name: str
    category: PackCategory
    version: str
    size: int
    download_url: str
    description: str = ""
    size_display: str = ""
    tags: tuple[str, ...] = ()
    icon: str = ""
    resources: tuple[PackResource, ...] = ()
    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    metadata: PackMetadata = field(default_factory=PackMetadata)
    checksum: str = ""
    updated_at: str = ""

    @property
    def display_size(self) -> str:
        return self.size_display or format_size(self.size)

    def new_record(self) -> DatasetRecord:
        return DatasetRecord(
            id=self.id,
            name=self.name,
            type=DatasetType.PACK,
            size=round(self.size / MB, 1),
            description=self.description,
            version=self.version,
            category=self.category.value,
            resources=[r.type.value for r in self.resources],
        )


# ---------------------------------------------------------------------------
# Validation and parsing
# ---------------------------------------------------------------------------


def validate_manifest(data: dict[str, Any]) -> list[str]:
    """Return every problem with a raw manifest dict; empty means valid."""
    errors: list[str] = []
    if not data.get("id"):
        errors.append("Missing pack ID")
    if not data.get("name"):
        errors.append("Missing pack name")
    if not data.get("version"):
        errors.append("Missing version")
    if data.get("category") not in {c.value for c in PackCategory}:
        errors.append("Invalid or missing category")
    size = data.get("size")
    if isinstance(size, bool) or not isinstance(size, (int, float)) or size <= 0:
        errors.append("Invalid size")
    metadata = data.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("license"):
        errors.append("Missing license information")
    if not data.get("downloadUrl"):
        errors.append("Missing download URL")
    resource_types = {t.value for t in ResourceType}
    for resource in data.get("resources") or []:
        if not isinstance(resource, dict) or not resource.get("id") or not resource.get("path"):
            errors.append("Resource entries need an id and a path")
        elif resource.get("type") not in resource_types:
            errors.append(f"Unknown resource type '{resource.get('type')}' in {resource['id']}")
    return errors


def parse_manifest(data: dict[str, Any]) -> PackManifest:
    """Build a PackManifest from its registry JSON.

    Raises:
        InvalidInputError: The manifest fails validate_manifest().
    """
    if not isinstance(data, dict):
        raise InvalidInputError("Pack manifest must be a JSON object")
    errors = validate_manifest(data)
    if errors:
        raise InvalidInputError(f"Invalid pack {data.get('id') or '?'}: {', '.join(errors)}")

    meta = data["metadata"]
    deps = data.get("dependencies") or {}
    return PackManifest(
        id=str(data["id"]),
        name=str(data["name"]),
        category=PackCategory(data["category"]),
        version=str(data["version"]),
        size=int(data["size"]),
        download_url=str(data["downloadUrl"]),
        description=str(data.get("description") or ""),
        size_display=str(data.get("sizeDisplay") or ""),
        tags=tuple(data.get("tags") or ()),
        icon=str(data.get("icon") or ""),
        resources=tuple(
            PackResource(
                id=str(r["id"]),
                type=ResourceType(r["type"]),
                path=str(r["path"]),
                size=int(r.get("size") or 0),
                checksum=str(r.get("checksum") or ""),
            )
            for r in data.get("resources") or []
        ),
        required=tuple(deps.get("required") or ()),
        optional=tuple(deps.get("optional") or ()),
        metadata=PackMetadata(
            source=str(meta.get("source") or ""),
            license=str(meta["license"]),
            license_url=str(meta.get("licenseUrl") or ""),
            attribution=str(meta.get("attribution") or ""),
            last_verified=str(meta.get("lastVerified") or ""),
        ),
        checksum=str(data.get("checksum") or "").lower(),
        updated_at=str(data.get("updatedAt") or ""),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def format_size(num_bytes: float) -> str:
    """Human-readable size: ``512 B``, ``1.5 KB``, ``15.0 MB``, ``2.30 GB``."""
    if num_bytes < 1024:
        return f"{int(num_bytes)} B"
    if num_bytes < MB:
        return f"{num_bytes / 1024:.1f} KB"
    if num_bytes < GB:
        return f"{num_bytes / MB:.1f} MB"
    return f"{num_bytes / GB:.2f} GB"


def _version_parts(version: str) -> list[int]:
    parts: list[int] = []
    for piece in version.split(".")[:3]:
        digits = "".join(ch for ch in piece if ch.isdigit())
        parts.append(int(digits) if digits else 0)
    return parts + [0] * (3 - len(parts))


def compare_versions(a: str, b: str) -> int:
    """Compare ``major.minor.patch`` strings: 1 if a > b, -1 if a < b, else 0."""
    left, right = _version_parts(a), _version_parts(b)
    if left > right:
        return 1
    if left < right:
        return -1
    return 0


# ---------------------------------------------------------------------------
# Built-in manifests, used when no registry is configured or reachable
# ---------------------------------------------------------------------------


EXAMPLE_PACKS: list[dict[str, Any]] = [
    {
        "id": "medical-core-v1",
        "name": "Essential Medical Guide",
        "description": (
            "First aid, CPR, emergency triage decision trees, and common medical "
            "emergencies. Sourced from Wikipedia WikiProject Medicine."
        ),
        "category": "medical",
        "version": "1.2.0",
        "size": 15 * MB,
        "sizeDisplay": "15 MB",
        "tags": ["first-aid", "cpr", "emergency", "medical", "triage"],
        "icon": "medical",
        "resources": [
            {"id": "cpr-guide", "type": "article", "path": "articles/cpr.json", "size": 45000},
            {"id": "first-aid-guide", "type": "article", "path": "articles/first-aid.json", "size": 67000},
            {"id": "triage-breathing", "type": "ink-story", "path": "ink/breathing-emergency.ink.json", "size": 12000},
        ],
        "dependencies": {"required": [], "optional": ["medical-advanced-v1"]},
        "metadata": {
            "source": "Wikipedia WikiProject Medicine",
            "license": "CC-BY-SA-4.0",
            "licenseUrl": "https://creativecommons.org/licenses/by-sa/4.0/",
            "attribution": "Content from Wikipedia contributors, licensed under CC-BY-SA 4.0",
            "lastVerified": "2024-12-01",
        },
        "checksum": "",
        "downloadUrl": "/packs/medical-core-v1.zip",
        "updatedAt": "2024-12-15T00:00:00Z",
    },
    {
        "id": "legal-uk-v1",
        "name": "UK Legal Rights",
        "description": (
            "Know your rights when dealing with police, arrests, searches, and legal "
            "procedures in the UK. Based on PACE codes and legislation.gov.uk."
        ),
        "category": "legal",
        "version": "1.0.0",
        "size": 8 * MB,
        "sizeDisplay": "8 MB",
        "tags": ["legal", "rights", "police", "arrest", "uk", "pace"],
        "icon": "legal",
        "resources": [
            {"id": "pace-codes", "type": "article", "path": "articles/pace-codes.json", "size": 120000},
            {"id": "arrest-rights", "type": "ink-story", "path": "ink/arrest-rights.ink.json", "size": 15000},
        ],
        "dependencies": {"required": [], "optional": []},
        "metadata": {
            "source": "UK Government / legislation.gov.uk",
            "license": "OGL-3.0",
            "licenseUrl": "https://www.nationalarchives.gov.uk/doc/open-government-licence/version/3/",
            "attribution": "Contains public sector information licensed under the Open Government Licence v3.0",
            "lastVerified": "2024-11-01",
        },
        "checksum": "",
        "downloadUrl": "/packs/legal-uk-v1.zip",
        "updatedAt": "2024-11-15T00:00:00Z",
    },
    {
        "id": "survival-core-v1",
        "name": "Survival Essentials",
        "description": (
            "Water purification, shelter building, fire starting, navigation, and "
            "emergency preparedness. Based on Red Cross and FEMA guidelines."
        ),
        "category": "survival",
        "version": "1.1.0",
        "size": 12 * MB,
        "sizeDisplay": "12 MB",
        "tags": ["survival", "emergency", "water", "shelter", "fire", "navigation"],
        "icon": "survival",
        "resources": [
            {"id": "water-purification", "type": "article", "path": "articles/water-purification.json", "size": 35000},
            {"id": "shelter-building", "type": "article", "path": "articles/shelter.json", "size": 42000},
        ],
        "dependencies": {"required": [], "optional": ["region-wilderness-v1"]},
        "metadata": {
            "source": "Red Cross / FEMA",
            "license": "Public Domain",
            "licenseUrl": "",
            "attribution": "Based on American Red Cross and FEMA emergency preparedness materials",
            "lastVerified": "2024-10-01",
        },
        "checksum": "",
        "downloadUrl": "/packs/survival-core-v1.zip",
        "updatedAt": "2024-10-15T00:00:00Z",
    },
    {
        "id": "region-london-v1",
        "name": "London Offline Map",
        "description": (
            "Offline map tiles and points of interest for Greater London including "
            "hospitals, shelters, and emergency services."
        ),
        "category": "region",
        "version": "1.0.0",
        "size": 85 * MB,
        "sizeDisplay": "85 MB",
        "tags": ["london", "uk", "map", "offline", "hospitals", "shelters"],
        "icon": "map",
        "resources": [
            {"id": "london-tiles", "type": "map-tiles", "path": "tiles/", "size": 75 * MB},
            {"id": "london-hospitals", "type": "places", "path": "places/hospitals.json", "size": 250000},
            {"id": "london-shelters", "type": "places", "path": "places/shelters.json", "size": 120000},
        ],
        "dependencies": {"required": [], "optional": []},
        "metadata": {
            "source": "OpenStreetMap",
            "license": "ODbL-1.0",
            "licenseUrl": "https://opendatacommons.org/licenses/odbl/1-0/",
            "attribution": "© OpenStreetMap contributors",
            "lastVerified": "2024-12-01",
        },
        "checksum": "",
        "downloadUrl": "/packs/region-london-v1.zip",
        "updatedAt": "2024-12-01T00:00:00Z",
    },
    {
        "id": "ai-phi3-mini-v1",
        "name": "Phi-3 Mini (Offline AI)",
        "description": (
            "Microsoft Phi-3 Mini quantized model for offline AI assistance. Provides "
            "intelligent answers using your downloaded content."
        ),
        "category": "ai-model",
        "version": "1.0.0",
        "size": int(2.3 * GB),
        "sizeDisplay": "2.3 GB",
        "tags": ["ai", "llm", "offline", "assistant", "phi3"],
        "icon": "ai",
        "resources": [
            {"id": "phi3-mini-q4", "type": "model", "path": "models/phi3-mini-q4.gguf", "size": int(2.3 * GB)},
        ],
        "dependencies": {"required": [], "optional": []},
        "metadata": {
            "source": "Microsoft Research",
            "license": "MIT",
            "licenseUrl": "https://opensource.org/licenses/MIT",
            "attribution": "Phi-3 by Microsoft Research",
            "lastVerified": "2024-12-01",
        },
        "checksum": "",
        "downloadUrl": "/packs/ai-phi3-mini-v1.gguf",
        "updatedAt": "2024-12-01T00:00:00Z",
    },
]


def example_manifests() -> list[PackManifest]:
    return [parse_manifest(data) for data in EXAMPLE_PACKS]
