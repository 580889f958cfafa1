"""Dataset records and their status transitions."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class DatasetType(str, enum.Enum):
    REGION = "region"
    GUIDE = "guide"
    PACK = "pack"


class DatasetStatus(str, enum.Enum):
    DOWNLOADING = "downloading"
    INSTALLED = "installed"
    FAILED = "failed"


@dataclass
class DatasetRecord:
    """Persisted install state of one dataset.

    Within one install attempt the status only moves forward:
    ``downloading -> installed`` or ``downloading -> failed``. A retry starts a
    fresh ``downloading`` record.

    Attributes:
        size: Declared size in MB, used for the storage usage estimate.
        modules: Region/guide modules (``map-tiles``, ``places-medical``...).
        resources: Pack resource types.
        coordinates: ``[lat, lon]`` centre for map-bearing regions.
    """

    id: str
    name: str
    type: DatasetType
    size: float = 0.0
    status: DatasetStatus = DatasetStatus.DOWNLOADING
    description: str = ""
    version: str | None = None
    category: str | None = None
    modules: list[str] = field(default_factory=list)
    resources: list[str] = field(default_factory=list)
    coordinates: list[float] | None = None
    content_ids: list[str] = field(default_factory=list)
    started_at: str | None = None
    installed_at: str | None = None
    failed_at: str | None = None
    error_message: str | None = None

    @property
    def is_installed(self) -> bool:
        return self.status is DatasetStatus.INSTALLED

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def downloading(self) -> DatasetRecord:
        return replace(
            self,
            status=DatasetStatus.DOWNLOADING,
            started_at=utc_now(),
            installed_at=None,
            failed_at=None,
            error_message=None,
        )

    def installed(self) -> DatasetRecord:
        return replace(self, status=DatasetStatus.INSTALLED, installed_at=utc_now())

    def failed(self, message: str) -> DatasetRecord:
        return replace(
            self, status=DatasetStatus.FAILED, failed_at=utc_now(), error_message=message
        )

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "size": self.size,
            "status": self.status.value,
            "description": self.description,
            "modules": list(self.modules),
            "resources": list(self.resources),
            "contentIds": list(self.content_ids),
            "startedAt": self.started_at,
        }
        optional = {
            "version": self.version,
            "category": self.category,
            "coordinates": self.coordinates,
            "installedAt": self.installed_at,
            "failedAt": self.failed_at,
            "errorMessage": self.error_message,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DatasetRecord:
        coordinates = data.get("coordinates")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            type=DatasetType(data.get("type", DatasetType.REGION.value)),
            size=float(data.get("size") or 0.0),
            # Records written before statuses existed were only saved once installed.
            status=DatasetStatus(data.get("status", DatasetStatus.INSTALLED.value)),
            description=str(data.get("description") or ""),
            version=data.get("version"),
            category=data.get("category"),
            modules=list(data.get("modules") or []),
            resources=list(data.get("resources") or []),
            coordinates=list(coordinates) if coordinates else None,
            content_ids=[str(c) for c in data.get("contentIds") or []],
            started_at=data.get("startedAt"),
            installed_at=data.get("installedAt"),
            failed_at=data.get("failedAt"),
            error_message=data.get("errorMessage"),
        )


@dataclass
class StorageUsage:
    """Declared-size estimate of installed content against the budget, in MB."""

    used_mb: float
    total_mb: float

    @property
    def free_mb(self) -> float:
        return max(0.0, round(self.total_mb - self.used_mb, 1))

    @property
    def percent(self) -> float:
        return 0.0 if self.total_mb <= 0 else round(self.used_mb / self.total_mb * 100, 1)
