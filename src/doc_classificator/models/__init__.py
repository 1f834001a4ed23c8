# Data models shared across the classification engine

from .engine_version import EngineVersion
from .document import Document, DocumentStatus

__all__ = [
    "EngineVersion",
    "Document",
    "DocumentStatus",
]
