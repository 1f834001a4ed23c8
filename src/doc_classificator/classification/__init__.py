"""
Classification package: the orchestration engine.

Main components:
- schemas: Pydantic models for results, audit entries and raw model output
- prompts: Versioned prompt templates and request building
- validators: Multi-stage validation of model responses
- llm_client: Classification client abstraction (OpenAI-compatible, Ollama)
- store: Owned document/result table
- orchestrator: Per-document state machine and cross-verification
- correction: Human-in-the-loop feedback and correction workflow
"""

from doc_classificator.classification.schemas import (
    # Enums
    AuditAction,
    ErrorKind,

    # Models
    CategoryAssignment,
    ResultFlags,
    CrossVerification,
    CorrectionInfo,
    ErrorInfo,
    PrecheckReport,
    ClassificationResult,
    AuditEntry,
    LLMRawOutput,
    ParsedClassification,
    ClassificationRequest,
    CorrectiveContext,
    CorrectionNeeded,
)

__all__ = [
    # Enums
    "AuditAction",
    "ErrorKind",

    # Models
    "CategoryAssignment",
    "ResultFlags",
    "CrossVerification",
    "CorrectionInfo",
    "ErrorInfo",
    "PrecheckReport",
    "ClassificationResult",
    "AuditEntry",
    "LLMRawOutput",
    "ParsedClassification",
    "ClassificationRequest",
    "CorrectiveContext",
    "CorrectionNeeded",
]
