"""
Session wiring: one taxonomy, one store, one orchestrator, one correction workflow.

The HTTP API keeps a session on app.state; the CLI builds a throwaway one
per invocation.
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog

from doc_classificator.classification.correction import CorrectionWorkflow
from doc_classificator.classification.llm_client import ClassificationClient, create_llm_client
from doc_classificator.classification.orchestrator import ClassificationOrchestrator
from doc_classificator.classification.store import ClassificationStore
from doc_classificator.config import settings
from doc_classificator.models.engine_version import EngineVersion
from doc_classificator.reporting.export import ExportReport, build_export_report
from doc_classificator.taxonomy.registry import TaxonomyRegistry, load_taxonomy
from doc_classificator.version import get_current_engine_version


logger = structlog.get_logger(__name__)


@dataclass
class ClassificationSession:
    """Everything one user session needs, owned explicitly."""
    taxonomy: TaxonomyRegistry
    store: ClassificationStore
    orchestrator: ClassificationOrchestrator
    correction: CorrectionWorkflow

    @property
    def client(self) -> ClassificationClient:
        return self.orchestrator.client

    def engine_version(self) -> EngineVersion:
        return get_current_engine_version(
            taxonomy_version=self.taxonomy.version,
            model_version=str(self.client.model_identifier),
        )

    def export_report(self) -> ExportReport:
        return build_export_report(
            self.store,
            self.taxonomy,
            engine_version=self.engine_version(),
        )


def create_session(
    client: Optional[ClassificationClient] = None,
    taxonomy: Optional[TaxonomyRegistry] = None,
    **orchestrator_kwargs: Any,
) -> ClassificationSession:
    """
    Build a session from settings, with optional overrides.

    Args:
        client: Classification client (default: create_llm_client() from settings)
        taxonomy: Taxonomy (default: settings.taxonomy_file or the packaged default)
        **orchestrator_kwargs: Passed to ClassificationOrchestrator
            (template, cross_verify_enabled, cross_verify_threshold, precheck, clock, ...)

    Returns:
        ClassificationSession
    """
    taxonomy = taxonomy or load_taxonomy(settings.taxonomy_file)
    client = client or create_llm_client()

    clock = orchestrator_kwargs.get("clock")
    store = ClassificationStore(clock=clock) if clock else ClassificationStore()

    orchestrator = ClassificationOrchestrator(
        client=client,
        taxonomy=taxonomy,
        store=store,
        **orchestrator_kwargs,
    )
    correction = CorrectionWorkflow(orchestrator)

    logger.info(
        "session_created",
        taxonomy_version=taxonomy.version,
        template=orchestrator.template,
        cross_verify=orchestrator.cross_verify_enabled,
        model=str(client.model_identifier)
    )

    return ClassificationSession(
        taxonomy=taxonomy,
        store=store,
        orchestrator=orchestrator,
        correction=correction,
    )
