"""
CLI module for document classification.

Provides command-line tools for batch processing.
"""

from doc_classificator.cli.classify import main as classify_main

__all__ = ["classify_main"]
