"""Dataset lifecycle: catalog regions and guides, plus downloadable content packs."""

from urban_offline.datasets.catalog import GUIDES, REGIONS, Catalog, DatasetDescriptor
from urban_offline.datasets.manager import AvailableDataset, DatasetManager
from urban_offline.datasets.models import DatasetRecord, DatasetStatus, DatasetType, StorageUsage
from urban_offline.datasets.pack_schema import (
    EXAMPLE_PACKS,
    PackCategory,
    PackManifest,
    PackStatus,
    ResourceType,
    compare_versions,
    format_size,
    parse_manifest,
    validate_manifest,
)
from urban_offline.datasets.packs import AvailablePack, ContentPackManager, PackStorageUsage

__all__ = [
    "EXAMPLE_PACKS",
    "GUIDES",
    "REGIONS",
    "AvailableDataset",
    "AvailablePack",
    "Catalog",
    "ContentPackManager",
    "DatasetDescriptor",
    "DatasetManager",
    "DatasetRecord",
    "DatasetStatus",
    "DatasetType",
    "PackCategory",
    "PackManifest",
    "PackStatus",
    "PackStorageUsage",
    "ResourceType",
    "StorageUsage",
    "compare_versions",
    "format_size",
    "parse_manifest",
    "validate_manifest",
]
