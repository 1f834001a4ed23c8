"""
Taxonomy package: configurable category labels for classification.
"""

from doc_classificator.taxonomy.registry import (
    CategoryDescriptor,
    Severity,
    TaxonomyRegistry,
    get_default_taxonomy,
    load_taxonomy,
)

__all__ = [
    "CategoryDescriptor",
    "Severity",
    "TaxonomyRegistry",
    "get_default_taxonomy",
    "load_taxonomy",
]
