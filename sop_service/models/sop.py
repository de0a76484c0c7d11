"""SOP document models for LLM output parsing.

The JSON keys produced by the model contain spaces and slashes, so every
field is declared with its exact key as an alias. Documents are validated as
a union: a complete SOP, or a partial SOP carrying an ``Errors`` list for
data the model could not observe.
"""

from typing import Annotated, Any, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    Discriminator,
    Field,
    StringConstraints,
    Tag,
    TypeAdapter,
)

TIMESTAMP_PATTERN = r"^[0-9]{1,2}:[0-5][0-9]$"

MMSS = Annotated[str, StringConstraints(pattern=TIMESTAMP_PATTERN)]


def _whole_number(value: Any) -> Any:
    # JSON Schema "integer" admits integral floats such as 2.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("Quantity must be an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("Quantity must be an integer")
        return int(value)
    return value


Quantity = Annotated[int, BeforeValidator(_whole_number)]


class PartItem(BaseModel):
    """A tool, part or material used in the build."""

    category: str = Field(alias="Category")
    part_number: str = Field(alias="Part Number/Specification")
    description: str = Field(alias="Description")
    quantity: Quantity = Field(alias="Quantity", ge=1)


class StepTimestamp(BaseModel):
    """Start and end of a step in the source video."""

    start: MMSS = Field(alias="Start")
    end: MMSS = Field(alias="End")


class Step(BaseModel):
    """A single atomic build step."""

    purpose_scope: str = Field(alias="Purpose/Scope")
    tools_and_materials: list[PartItem] = Field(alias="Tools and Materials")
    timestamp: StepTimestamp = Field(alias="Timestamp")
    procedure: list[str] = Field(alias="Procedure", min_length=1)
    image_suggestions: list[MMSS] = Field(alias="Image Suggestions", min_length=1)
    quality_checks: list[str] = Field(alias="Quality Checks", min_length=1)


class CompleteSOP(BaseModel):
    """SOP derived entirely from observable data."""

    initial_setup: list[PartItem] = Field(alias="Initial Setup: Required Tools and Materials")
    steps: list[Step] = Field(alias="Steps")

    @property
    def has_errors(self) -> bool:
        return False


class PartialSOP(CompleteSOP):
    """SOP returned with the fail-safe ``Errors`` list."""

    errors: list[str] = Field(alias="Errors", min_length=1)

    @property
    def has_errors(self) -> bool:
        return True


def _sop_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "partial" if "Errors" in value else "complete"
    return "partial" if isinstance(value, PartialSOP) else "complete"


SOPDocument = Annotated[
    Union[
        Annotated[CompleteSOP, Tag("complete")],
        Annotated[PartialSOP, Tag("partial")],
    ],
    Discriminator(_sop_kind),
]

sop_document_adapter = TypeAdapter(SOPDocument)


def parse_sop_document(data: Any) -> Union[CompleteSOP, PartialSOP]:
    """Validate decoded JSON as an SOP document.

    Raises:
        pydantic.ValidationError: If the data violates the SOP schema
    """
    return sop_document_adapter.validate_python(data)


def dump_sop_document(document: Union[CompleteSOP, PartialSOP]) -> dict[str, Any]:
    """Serialize an SOP document back to its JSON key layout."""
    return document.model_dump(by_alias=True)
