"""
Taxonomy registry: the fixed set of category labels for one deployment.

The taxonomy is configuration data. It is loaded once (from a JSON file or
the packaged default) and is immutable for the lifetime of a session.
"""

import json
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = structlog.get_logger(__name__)

DEFAULT_TAXONOMY_PATH = Path(__file__).parent / "default_taxonomy.json"


class Severity(str, Enum):
    """Severity tag attached to a category."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CategoryDescriptor(BaseModel):
    """Category label with display metadata and decision criteria."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Canonical label, as returned by the model")
    display_name: str = Field(default="", description="Human-friendly label")
    severity: Severity = Field(default=Severity.MEDIUM)
    description: str = Field(default="", description="Decision criteria shown to the model")
    color: str = Field(default="gray", description="Presentation hint")

    @property
    def label(self) -> str:
        return self.display_name or self.name


class TaxonomyRegistry:
    """
    Ordered, immutable registry of CategoryDescriptors.

    Lookups are exact-match on the canonical name.
    """

    def __init__(self, categories: Iterable[CategoryDescriptor], version: str = "custom"):
        ordered: List[CategoryDescriptor] = []
        by_name: Dict[str, CategoryDescriptor] = {}

        for category in categories:
            name = category.name.strip()
            if not name:
                raise ValueError("Category name must not be empty")
            if name in by_name:
                raise ValueError(f"Duplicate category in taxonomy: {name}")
            by_name[name] = category
            ordered.append(category)

        if not ordered:
            raise ValueError("Taxonomy must define at least one category")

        self._categories = tuple(ordered)
        self._by_name = by_name
        self.version = version

    def list_categories(self) -> List[CategoryDescriptor]:
        """Categories in configuration order."""
        return list(self._categories)

    def is_valid(self, name: Any) -> bool:
        return isinstance(name, str) and name in self._by_name

    def get(self, name: str) -> Optional[CategoryDescriptor]:
        return self._by_name.get(name)

    def names(self) -> List[str]:
        return [c.name for c in self._categories]

    def __len__(self) -> int:
        return len(self._categories)

    def __contains__(self, name: object) -> bool:
        return self.is_valid(name)

    def __repr__(self) -> str:
        return f"<TaxonomyRegistry(version={self.version}, categories={len(self)})>"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaxonomyRegistry":
        """
        Build a registry from a {"version": ..., "categories": [...]} mapping.

        Raises:
            ValueError: If the mapping is malformed
        """
        raw_categories = data.get("categories")
        if not isinstance(raw_categories, list):
            raise ValueError("Taxonomy configuration needs a 'categories' list")

        try:
            categories = [CategoryDescriptor(**raw) for raw in raw_categories]
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid category definition: {e}") from e

        return cls(categories, version=str(data.get("version", "custom")))


def load_taxonomy(path: Optional[Union[str, Path]] = None) -> TaxonomyRegistry:
    """
    Load the taxonomy from a JSON file.

    Args:
        path: JSON taxonomy file; None loads the packaged default

    Returns:
        TaxonomyRegistry instance

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a valid taxonomy definition
    """
    taxonomy_path = Path(path) if path else DEFAULT_TAXONOMY_PATH

    with open(taxonomy_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Taxonomy file is not valid JSON: {e}") from e

    registry = TaxonomyRegistry.from_dict(data)

    logger.info(
        "taxonomy_loaded",
        path=str(taxonomy_path),
        version=registry.version,
        categories=registry.names(),
    )

    return registry


def get_default_taxonomy() -> TaxonomyRegistry:
    """Packaged default taxonomy."""
    return load_taxonomy(None)
