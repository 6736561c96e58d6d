from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import yaml
from jsonschema import Draft202012Validator

from dreamdecor.errors import CatalogError, UnknownFurnitureError

logger = logging.getLogger(__name__)

ERASER_ID = "none"


@lru_cache(maxsize=1)
def _load_catalog_schema() -> Dict[str, Any]:
    text = resources.files("dreamdecor.config").joinpath("furniture.schema.json").read_text(encoding="utf-8")
    return json.loads(text)


def validate_catalog_data(data: Any, source: str = "<catalog>") -> None:
    """Validate raw catalog data against the bundled JSON schema.

    All schema errors are logged; the first one is raised as CatalogError.
    """
    validator = Draft202012Validator(_load_catalog_schema())
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if errors:
        for err in errors:
            logger.error("Catalog schema error in %s at %s: %s", source, list(err.path), err.message)
        first = errors[0]
        raise CatalogError(f"Invalid catalog {source} at {list(first.path)}: {first.message}")


class PlacementClass(str, Enum):
    ERASER = "eraser"
    FLOOR = "floor"
    FURNITURE = "furniture"
    SURFACE = "surface"
    STACKABLE = "stackable"
    STRUCTURE = "structure"


@dataclass(frozen=True)
class FurnitureDefinition:
    """Static metadata for a placeable item."""

    id: str
    name: str
    cost: int
    style: int
    placement: PlacementClass
    comfort: int = 0
    description: str = ""

    @property
    def is_eraser(self) -> bool:
        return self.placement is PlacementClass.ERASER

    @property
    def can_carry_stack(self) -> bool:
        return self.placement is PlacementClass.SURFACE

    @property
    def can_stack(self) -> bool:
        return self.placement is PlacementClass.STACKABLE


class FurnitureCatalog:
    """Read-only mapping from furniture id to :class:`FurnitureDefinition`.

    The catalog always contains the eraser sentinel (``none``, cost 0).
    """

    def __init__(self, definitions: List[FurnitureDefinition]) -> None:
        items: Dict[str, FurnitureDefinition] = {}
        for definition in definitions:
            if definition.id in items:
                raise CatalogError(f"Duplicate furniture id in catalog: {definition.id}")
            items[definition.id] = definition
        eraser = items.get(ERASER_ID)
        if eraser is None or not eraser.is_eraser or eraser.cost != 0:
            raise CatalogError(f"Catalog must define '{ERASER_ID}' as a zero-cost eraser entry")
        self._items = items

    # ---------------------- Loading ----------------------
    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> "FurnitureCatalog":
        """Load the bundled furniture.yaml, or a user supplied file."""
        if path is None:
            text = resources.files("dreamdecor.config").joinpath("furniture.yaml").read_text(encoding="utf-8")
            source = "embedded furniture.yaml"
        else:
            path = Path(path)
            if not path.exists():
                raise FileNotFoundError(f"Furniture catalog file not found: {path}")
            text = path.read_text(encoding="utf-8")
            source = str(path)

        raw = yaml.safe_load(text) or {}
        validate_catalog_data(raw, source)
        catalog = cls.from_records(raw["items"])
        logger.info("Loaded %d furniture definitions from %s", len(catalog), source)
        return catalog

    @classmethod
    def from_records(cls, records: List[dict]) -> "FurnitureCatalog":
        parsed: List[FurnitureDefinition] = []
        for idx, it in enumerate(records):
            try:
                item_id = str(it["id"]).strip()
                name = str(it.get("name", item_id)).strip()
                cost = int(it["cost"])
                style = int(it["style"])
                comfort = int(it.get("comfort", 0))
                placement = PlacementClass(str(it["placement"]).strip())
                description = str(it.get("description", ""))
            except (KeyError, TypeError, ValueError) as exc:
                raise CatalogError(f"Invalid furniture entry at index {idx}") from exc

            if not item_id:
                raise CatalogError(f"Furniture entry at index {idx} has empty id")
            if cost < 0:
                raise CatalogError(f"Furniture '{item_id}' has negative cost")

            parsed.append(
                FurnitureDefinition(
                    id=item_id,
                    name=name,
                    cost=cost,
                    style=style,
                    comfort=comfort,
                    placement=placement,
                    description=description,
                )
            )
        return cls(parsed)

    # ---------------------- Lookup ----------------------
    def lookup(self, furniture_id: str) -> FurnitureDefinition:
        try:
            return self._items[furniture_id]
        except KeyError as exc:
            raise UnknownFurnitureError(f"Furniture not found: {furniture_id}") from exc

    def refund_of(self, furniture_id: str) -> int:
        """Full refund: removing an item gives back its catalog cost."""
        return self.lookup(furniture_id).cost

    @property
    def eraser(self) -> FurnitureDefinition:
        return self._items[ERASER_ID]

    def ids(self) -> List[str]:
        return list(self._items)

    def placeable(self) -> List[FurnitureDefinition]:
        return [d for d in self._items.values() if not d.is_eraser]

    def __contains__(self, furniture_id: object) -> bool:
        return furniture_id in self._items

    def __iter__(self) -> Iterator[FurnitureDefinition]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)
