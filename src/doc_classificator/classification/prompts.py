"""
Prompt management for document classification.

Provides versioned prompt templates with:
- Selectable classification strategies (standard, detailed, safety-first,
  propaganda detection)
- Enumerated taxonomy with decision criteria
- Optional worked examples
- Mandated response schema
- Corrective context for re-classification after human feedback

Request text is a pure function of its inputs (no timestamps, no
randomness) so audit entries can be reproduced.
"""

from typing import Dict, List, Optional

from doc_classificator.classification.schemas import (
    MAX_CATEGORIES,
    ClassificationRequest,
    CorrectiveContext,
)
from doc_classificator.intake.document_loader import extract_text
from doc_classificator.models.document import Document
from doc_classificator.taxonomy.registry import TaxonomyRegistry
from doc_classificator.version import PROMPT_VERSION


# ============================================================================
# TEMPLATE LIBRARY
# ============================================================================

TEMPLATE_INSTRUCTIONS: Dict[str, str] = {
    "standard": (
        "Classify this document into the categories below. Consider personal data (PII), "
        "business confidentiality, policy restrictions and safety concerns."
    ),
    "detailed": (
        "Perform a detailed multi-factor analysis: "
        "1) Identify PII (national ID numbers, credit cards, health or financial records) "
        "2) Assess business sensitivity "
        "3) Check for safety concerns "
        "4) Determine the appropriate classification with a confidence score."
    ),
    "safety_first": (
        "Primary focus on safety: first scan for hate speech, exploitative content, violent "
        "content, criminal activity, political news or cyber-threats. Then assess data sensitivity."
    ),
    "propaganda_detection": (
        "Analyze for propaganda and manipulation techniques: "
        "1) Identify emotional manipulation, loaded language and fear-mongering "
        "2) Detect logical fallacies and misleading statistics "
        "3) Check for one-sided narratives and demonization "
        "4) Identify appeals to authority without evidence "
        "5) Detect bandwagon tactics and false dichotomies. "
        "Flag as the unsafe category if propaganda is detected, otherwise classify normally."
    ),
}

DEFAULT_TEMPLATE = "standard"


def list_templates() -> List[str]:
    """Available template identifiers."""
    return list(TEMPLATE_INSTRUCTIONS)


def get_template_instructions(template: str) -> str:
    """
    Get strategy instructions by template identifier.

    Raises:
        ValueError: If template not found
    """
    try:
        return TEMPLATE_INSTRUCTIONS[template]
    except KeyError:
        raise ValueError(
            f"Unknown prompt template: {template}. Available: {list_templates()}"
        ) from None


# ============================================================================
# SYSTEM PROMPT
# ============================================================================

SYSTEM_PROMPT_V1 = f"""You are a precise document sensitivity and safety classifier.

Your task is to read a document excerpt and assign it to categories from a fixed taxonomy.

CRITICAL RULES:
1. Select 1-{MAX_CATEGORIES} categories, most relevant first. Use category names EXACTLY as listed.
2. Never invent categories that are not in the taxonomy.
3. Each category needs a confidence between 0.0 and 1.0 and a non-empty reasoning.
4. Do not repeat a category.
5. Reply with a single JSON object only: no markdown, no code fences, no commentary.
"""


# ============================================================================
# RESPONSE SCHEMA
# ============================================================================

RESPONSE_SCHEMA_DESCRIPTION = f"""Respond ONLY with valid JSON in this exact format (no markdown, no code blocks):
{{
  "categories": [
    {{
      "category": "category name from the list above",
      "confidence": 0.85,
      "reasoning": "detailed explanation of why this classification was chosen"
    }}
  ],
  "keyFindings": ["finding 1", "finding 2"],
  "recommendations": "specific recommendations for handling this document"
}}
"categories" holds 1-{MAX_CATEGORIES} objects. "keyFindings" and "recommendations" may be empty."""


# ============================================================================
# EXAMPLES
# ============================================================================

EXAMPLES = [
    {
        "document": "employee_records.csv",
        "excerpt": "name,ssn,salary\nJane Roe,123-45-6789,84000",
        "expected_categories": ["Highly Sensitive"],
        "reasoning": "Social security numbers and salaries of named employees",
    },
    {
        "document": "press_release.txt",
        "excerpt": "FOR IMMEDIATE RELEASE: Our new store opens downtown on Monday.",
        "expected_categories": ["Public"],
        "reasoning": "Content written for public distribution, no sensitive data",
    },
    {
        "document": "q3_strategy_memo.txt",
        "excerpt": "INTERNAL ONLY. Planned acquisition of competitor, do not share outside the board.",
        "expected_categories": ["Confidential (Important/Internal)"],
        "reasoning": "Unreleased strategic plans restricted to internal readers",
    },
]


def format_examples_for_prompt(taxonomy: TaxonomyRegistry) -> str:
    """
    Format examples for inclusion in prompt.

    Examples whose expected categories are not all in the active taxonomy
    are skipped, so custom taxonomies never see foreign labels.
    """
    usable = [
        ex for ex in EXAMPLES
        if all(taxonomy.is_valid(c) for c in ex["expected_categories"])
    ]
    if not usable:
        return ""

    examples_text = "\n\nEXAMPLES OF GOOD CLASSIFICATION:\n"

    for i, ex in enumerate(usable, 1):
        examples_text += f"""
Example {i}:
Document: "{ex['document']}"
Excerpt: "{ex['excerpt']}"
Expected categories: {ex['expected_categories']}
Reasoning: {ex['reasoning']}
"""

    return examples_text


def format_taxonomy_for_prompt(taxonomy: TaxonomyRegistry) -> str:
    """Enumerate categories with their decision criteria."""
    lines = []
    for category in taxonomy.list_categories():
        if category.description:
            lines.append(f"- {category.name}: {category.description}")
        else:
            lines.append(f"- {category.name}")
    return "\n".join(lines)


# ============================================================================
# EXCERPT
# ============================================================================

def truncate_excerpt(text: str, max_length: int) -> str:
    """
    Deterministic truncation: the first max_length characters.

    Args:
        text: Full text
        max_length: Maximum number of characters kept

    Returns:
        Truncated text
    """
    if max_length < 0:
        raise ValueError("max_length must be >= 0")
    return text[:max_length]


def build_excerpt(document: Document, max_length: int) -> str:
    """
    Build the bounded excerpt sent to the model.

    Text-like documents contribute their decoded content (first max_length
    characters). Other documents are represented by a placeholder naming
    their type and file name.

    Args:
        document: Document to excerpt
        max_length: Maximum excerpt length in characters

    Returns:
        Excerpt string
    """
    if document.is_text:
        return truncate_excerpt(extract_text(document), max_length)
    return f"[{document.mime_type} file: {document.name}]"


# ============================================================================
# USER PROMPT BUILDER
# ============================================================================

def format_corrective_context(context: CorrectiveContext) -> str:
    previous = "\n".join(f"- {c}" for c in context.previous) or "- (none)"
    corrected = "\n".join(f"- {c}" for c in context.corrected)
    return f"""The previous classification for this document was incorrect.

Previous categories:
{previous}

Correct categories (asserted by a human reviewer):
{corrected}

Re-analyze this document and provide a classification using exactly these CORRECT categories.
For each one explain why it is correct and why the previous classification was wrong."""


def build_user_prompt(
    template: str,
    document: Document,
    excerpt: str,
    taxonomy: TaxonomyRegistry,
    corrective_context: Optional[CorrectiveContext] = None,
    include_examples: bool = True,
) -> str:
    """
    Build user prompt from document metadata and excerpt.

    Args:
        template: Template identifier
        document: Document metadata
        excerpt: Bounded document excerpt
        taxonomy: Active taxonomy
        corrective_context: Previous and corrected categories, for re-classification
        include_examples: Whether to append worked examples

    Returns:
        Formatted user prompt string
    """
    sections = [get_template_instructions(template)]

    if corrective_context is not None:
        sections.append(format_corrective_context(corrective_context))

    sections.append(f"""CATEGORIES (choose 1-{MAX_CATEGORIES}):
{format_taxonomy_for_prompt(taxonomy)}""")

    sections.append(f"""Document Name: {document.name}
Document Type: {document.mime_type}
Size: {document.size_bytes} bytes
Content Preview:
{excerpt}""")

    sections.append(RESPONSE_SCHEMA_DESCRIPTION)

    prompt = "\n\n".join(sections)

    # Examples help first-pass classification only
    if include_examples and corrective_context is None:
        prompt += format_examples_for_prompt(taxonomy)

    return prompt


def build_request(
    template: str,
    document: Document,
    excerpt: str,
    taxonomy: TaxonomyRegistry,
    corrective_context: Optional[CorrectiveContext] = None,
    include_examples: bool = True,
) -> ClassificationRequest:
    """
    Build a complete classification request (system + user prompt).

    Args:
        template: Template identifier (standard, detailed, safety_first, propaganda_detection)
        document: Document metadata
        excerpt: Bounded document excerpt
        taxonomy: Active taxonomy
        corrective_context: Previous and corrected categories, for re-classification
        include_examples: Whether to append worked examples

    Returns:
        ClassificationRequest

    Raises:
        ValueError: If template is unknown
    """
    user_prompt = build_user_prompt(
        template=template,
        document=document,
        excerpt=excerpt,
        taxonomy=taxonomy,
        corrective_context=corrective_context,
        include_examples=include_examples,
    )

    return ClassificationRequest(
        template=template,
        prompt_version=PROMPT_VERSION,
        document_id=document.id,
        system_prompt=SYSTEM_PROMPT_V1,
        user_prompt=user_prompt,
        is_correction=corrective_context is not None,
        metadata={"taxonomy_version": taxonomy.version},
    )
