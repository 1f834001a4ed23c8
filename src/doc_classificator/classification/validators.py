"""
Multi-stage validation pipeline for model classification responses.

Stages:
1. Fence stripping - remove surrounding ``` / ```json markers
2. JSON Parse - validate parseable JSON object
3. Schema Validation - Pydantic model validation
4. Business Rules - 1-2 categories, taxonomy membership, distinct, confidence range
5. Quality Checks - warnings for low confidence (never reject)

Parsing is all-or-nothing: a single error rejects the whole payload.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
from pydantic import ValidationError

from doc_classificator.classification.schemas import (
    MAX_CATEGORIES,
    CategoryAssignment,
    LLMRawOutput,
    ParsedClassification,
)
from doc_classificator.errors import ParseFailure
from doc_classificator.taxonomy.registry import TaxonomyRegistry


logger = structlog.get_logger(__name__)

LOW_CONFIDENCE_WARNING = 0.2

_LEADING_FENCE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*")
_TRAILING_FENCE = re.compile(r"\s*```\s*$")


# ============================================================================
# VALIDATION RESULT
# ============================================================================

@dataclass
class ValidationResult:
    """
    Result of multi-stage validation.

    Contains validation status, errors, warnings, and cleaned data.
    """
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    cleaned_data: Optional[Dict[str, Any]] = None

    def add_error(self, error: str):
        """Add an error to the result."""
        self.errors.append(error)
        self.valid = False

    def add_warning(self, warning: str):
        """Add a warning to the result (non-fatal)."""
        self.warnings.append(warning)


# ============================================================================
# FENCE STRIPPING
# ============================================================================

def strip_code_fences(raw_text: str) -> str:
    """
    Remove code-fence markers surrounding a model reply.

    Handles ```json ... ```, bare ``` ... ``` and unfenced text.
    """
    text = raw_text.strip()
    text = _LEADING_FENCE.sub("", text, count=1)
    text = _TRAILING_FENCE.sub("", text, count=1)
    return text.strip()


# ============================================================================
# VALIDATION PIPELINE
# ============================================================================

def validate_llm_output_multistage(
    raw_text: str,
    taxonomy: TaxonomyRegistry,
) -> ValidationResult:
    """
    Multi-stage validation of a raw model reply.

    Args:
        raw_text: Raw text returned by the classification client
        taxonomy: Active taxonomy

    Returns:
        ValidationResult with status, errors, warnings, cleaned data
    """
    result = ValidationResult(valid=True)

    # Stage 1: Strip fences
    logger.debug("validation_stage_1_strip_fences")
    text = strip_code_fences(raw_text or "")
    if not text:
        result.add_error("Empty response")
        return result

    # Stage 2: Parse JSON
    logger.debug("validation_stage_2_json_parse")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        result.add_error(f"Invalid JSON: {e}")
        return result

    if not isinstance(data, dict):
        result.add_error(f"Top-level JSON must be an object, got {type(data).__name__}")
        return result

    if "categories" not in data:
        result.add_error("Missing required field: categories")
        return result

    # Stage 3: Schema validation with Pydantic
    logger.debug("validation_stage_3_schema")
    try:
        raw_output = LLMRawOutput(**data)
    except ValidationError as e:
        for error in e.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            result.add_error(f"Schema violation at {field_path}: {error['msg']}")
        return result

    # Stage 4: Business rules validation
    logger.debug("validation_stage_4_business_rules")
    categories = raw_output.categories

    if not categories:
        result.add_error("categories must contain at least 1 item")
    elif len(categories) > MAX_CATEGORIES:
        result.add_error(
            f"categories must contain at most {MAX_CATEGORIES} items, got {len(categories)}"
        )

    result.errors.extend(validate_category_names(
        [c.category for c in categories], taxonomy
    ))
    result.errors.extend(validate_confidence_ranges(
        [c.confidence for c in categories]
    ))
    for idx, category in enumerate(categories):
        if not category.reasoning.strip():
            result.add_error(f"Empty reasoning in category {idx}")
    if result.errors:
        result.valid = False

    # Stage 5: Quality checks (warnings)
    logger.debug("validation_stage_5_quality_checks")
    for idx, category in enumerate(categories):
        if category.confidence < LOW_CONFIDENCE_WARNING:
            result.add_warning(
                f"Very low confidence for category {idx} ({category.category}): {category.confidence}"
            )

    if result.valid:
        result.cleaned_data = {
            "categories": [c.model_dump() for c in categories],
            "key_findings": raw_output.key_findings,
            "recommendations": raw_output.recommendations,
        }

    logger.info(
        "llm_output_validation_complete",
        valid=result.valid,
        errors_count=len(result.errors),
        warnings_count=len(result.warnings)
    )

    return result


def parse_classification_response(
    raw_text: str,
    taxonomy: TaxonomyRegistry,
) -> ParsedClassification:
    """
    Parse a raw model reply into a validated classification.

    Args:
        raw_text: Raw text returned by the classification client
        taxonomy: Active taxonomy

    Returns:
        ParsedClassification

    Raises:
        ParseFailure: If any validation stage fails
    """
    validation = validate_llm_output_multistage(raw_text, taxonomy)

    if not validation.valid:
        raise ParseFailure(
            f"Model response rejected: {'; '.join(validation.errors)}",
            errors=validation.errors,
        )

    data = validation.cleaned_data
    return ParsedClassification(
        categories=[CategoryAssignment(**c) for c in data["categories"]],
        key_findings=data["key_findings"],
        recommendations=data["recommendations"],
        warnings=validation.warnings,
    )


# ============================================================================
# SPECIFIC VALIDATORS
# ============================================================================

def validate_category_names(
    names: List[str],
    taxonomy: TaxonomyRegistry,
) -> List[str]:
    """
    Validate that category names are taxonomy members and distinct.

    Args:
        names: Category names in reply order
        taxonomy: Active taxonomy

    Returns:
        List of error messages (empty if all valid)
    """
    errors = []
    seen = set()

    for idx, name in enumerate(names):
        if not taxonomy.is_valid(name):
            errors.append(
                f"Invalid category in item {idx}: {name!r}. "
                f"Allowed: {taxonomy.names()}"
            )
        if name in seen:
            errors.append(f"Duplicate category in item {idx}: {name!r}")
        seen.add(name)

    return errors


def validate_confidence_ranges(confidences: List[float]) -> List[str]:
    """
    Validate that all confidence scores are in [0.0, 1.0].

    Returns:
        List of error messages (empty if all valid)
    """
    errors = []

    for idx, conf in enumerate(confidences):
        if not (0.0 <= conf <= 1.0):
            errors.append(
                f"Confidence out of range in item {idx}: {conf}. Must be in [0.0, 1.0]"
            )

    return errors


# ============================================================================
# VALIDATION REPORT
# ============================================================================

def format_validation_report(result: ValidationResult) -> str:
    """
    Format validation result as human-readable report.

    Args:
        result: Validation result

    Returns:
        Formatted string report
    """
    report = "=== Classification Response Validation Report ===\n\n"

    report += f"Status: {'VALID' if result.valid else 'INVALID'}\n\n"

    if result.errors:
        report += f"Errors ({len(result.errors)}):\n"
        for i, error in enumerate(result.errors, 1):
            report += f"  {i}. {error}\n"
        report += "\n"

    if result.warnings:
        report += f"Warnings ({len(result.warnings)}):\n"
        for i, warning in enumerate(result.warnings, 1):
            report += f"  {i}. {warning}\n"
        report += "\n"

    if result.valid:
        report += "Output passed all validation stages\n"
        report += f"Categories: {len(result.cleaned_data.get('categories', []))}\n"

    return report
