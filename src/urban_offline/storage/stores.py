"""Logical store registry and keying discipline.

Every store declares whether its key lives inside the stored value (in-line,
``id`` field) or must be passed by the caller (out-of-line). Bulk stores hold
large payloads and are routed to the filesystem by the relational backend.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from urban_offline.errors import InvalidInputError

DATASETS = "datasets"
GUIDES = "guides"
GUIDE_CONTENT = "guide_content"
DATA_CONTENT = "data_content"
MAP_TILES = "map_tiles"
HEALTH_CONTENT = "health_content"
SURVIVAL_CONTENT = "survival_content"
LAW_CONTENT = "law_content"
SEARCH_INDEX = "search_index"
INK_STATE = "ink_state"
AI_MODELS = "ai_models"
CONTENT_PACKS = "content_packs"


class KeyMode(str, enum.Enum):
    IN_LINE = "in-line"
    OUT_OF_LINE = "out-of-line"


@dataclass(frozen=True)
class StoreSpec:
    """Declared properties of one logical store.

    Attributes:
        name: Store name as used by callers.
        key_mode: Where the key comes from on ``put``.
        bulk: Large payloads; the relational backend keeps these on the filesystem.
        key_field: Value field holding the key for in-line stores.
    """

    name: str
    key_mode: KeyMode
    bulk: bool = False
    key_field: str = "id"


STORES: dict[str, StoreSpec] = {
    spec.name: spec
    for spec in (
        StoreSpec(DATASETS, KeyMode.IN_LINE),
        StoreSpec(GUIDES, KeyMode.IN_LINE),
        StoreSpec(GUIDE_CONTENT, KeyMode.IN_LINE, bulk=True),
        StoreSpec(DATA_CONTENT, KeyMode.IN_LINE, bulk=True),
        StoreSpec(MAP_TILES, KeyMode.OUT_OF_LINE, bulk=True),
        StoreSpec(HEALTH_CONTENT, KeyMode.IN_LINE, bulk=True),
        StoreSpec(SURVIVAL_CONTENT, KeyMode.IN_LINE, bulk=True),
        StoreSpec(LAW_CONTENT, KeyMode.IN_LINE, bulk=True),
        StoreSpec(SEARCH_INDEX, KeyMode.OUT_OF_LINE, bulk=True),
        StoreSpec(INK_STATE, KeyMode.OUT_OF_LINE),
        StoreSpec(AI_MODELS, KeyMode.IN_LINE),
        StoreSpec(CONTENT_PACKS, KeyMode.IN_LINE),
    )
}

# Stores scanned when (re)building the search index, in lookup order.
CONTENT_STORES: tuple[str, ...] = (
    HEALTH_CONTENT,
    SURVIVAL_CONTENT,
    LAW_CONTENT,
    GUIDE_CONTENT,
)


def store_spec(store: str) -> StoreSpec:
    """Return the spec for *store* or raise InvalidInputError if it is unknown."""
    try:
        return STORES[store]
    except KeyError:
        raise InvalidInputError(
            f"Unknown store '{store}'. Known stores: {', '.join(sorted(STORES))}"
        ) from None


def normalize_key(key: Any) -> str:
    """Normalise a caller key to the string form both backends persist."""
    if isinstance(key, bool) or not isinstance(key, (str, int)):
        raise InvalidInputError(
            f"Storage keys must be str or int, got {type(key).__name__}"
        )
    text = str(key)
    if not text:
        raise InvalidInputError("Storage keys must not be empty")
    return text


def resolve_key(spec: StoreSpec, value: Any, key: Any | None) -> str:
    """Work out the key for a ``put`` into *spec*, enforcing its key mode.

    Raises:
        InvalidInputError: Out-of-line store without an explicit key, or an
            in-line store whose value lacks the key field.
    """
    if spec.key_mode is KeyMode.OUT_OF_LINE:
        if key is None:
            raise InvalidInputError(
                f"Store '{spec.name}' uses out-of-line keys; put() requires an explicit key."
            )
        return normalize_key(key)

    if not isinstance(value, dict) or value.get(spec.key_field) is None:
        raise InvalidInputError(
            f"Store '{spec.name}' uses in-line keys; value must be a dict with "
            f"a '{spec.key_field}' field."
        )
    inline = normalize_key(value[spec.key_field])
    if key is not None and normalize_key(key) != inline:
        raise InvalidInputError(
            f"Explicit key '{key}' does not match in-line key '{inline}' in store '{spec.name}'."
        )
    return inline
