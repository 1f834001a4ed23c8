"""
Engine version model for reproducible classification.

Tracks the component versions that determine request text and validation
rules, so an exported report can be matched to the engine that produced it.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class EngineVersion(BaseModel):
    """
    Immutable version contract for audit reproducibility.

    Same version parameters + same document + same model reply = same result.
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    engine_version: str = Field(description="Orchestration engine version")
    prompt_version: str = Field(description="Prompt template library version")
    schema_version: str = Field(description="Response schema contract version")
    taxonomy_version: str = Field(description="Taxonomy configuration version")
    model_version: str = Field(description="LLM identifier (provider/model)")

    def to_repr(self) -> str:
        """
        Short representation for logging.

        Returns:
            Compact string representation with key version components.
        """
        return f"Engine-{self.engine_version}-{self.prompt_version}-{self.taxonomy_version}"
