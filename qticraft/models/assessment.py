from typing import Annotated, Literal, Union

from pydantic import Field, field_validator

from qticraft.models.geometry import StrictModel
from qticraft.models.widgets import Widget

Cardinality = Literal["single", "multiple", "ordered"]
BaseType = Literal["identifier", "string", "integer", "float"]
Scalar = Union[str, int, float]


class Choice(StrictModel):
    identifier: str
    content: str
    feedback: str | None = None


class InlineChoice(StrictModel):
    identifier: str
    content: str


class ChoiceInteraction(StrictModel):
    type: Literal["choiceInteraction"]
    responseIdentifier: str
    prompt: str
    choices: list[Choice]
    shuffle: bool = True
    minChoices: int = Field(default=1, ge=0)
    maxChoices: int = Field(default=1, ge=0)


class InlineChoiceInteraction(StrictModel):
    type: Literal["inlineChoiceInteraction"]
    responseIdentifier: str
    choices: list[InlineChoice]
    shuffle: bool = False


class TextEntryInteraction(StrictModel):
    type: Literal["textEntryInteraction"]
    responseIdentifier: str
    expectedLength: int | None = Field(default=None, gt=0)


class OrderInteraction(StrictModel):
    type: Literal["orderInteraction"]
    responseIdentifier: str
    prompt: str
    choices: list[Choice]
    shuffle: bool = True
    orientation: Literal["horizontal", "vertical"] = "vertical"


Interaction = Annotated[
    Union[ChoiceInteraction, InlineChoiceInteraction, TextEntryInteraction, OrderInteraction],
    Field(discriminator="type"),
]

INTERACTION_TYPES = (
    "choiceInteraction",
    "inlineChoiceInteraction",
    "textEntryInteraction",
    "orderInteraction",
)


class ResponseDeclaration(StrictModel):
    identifier: str
    cardinality: Cardinality
    baseType: BaseType
    correct: Scalar | list[Scalar]
    mapping: dict[str, float] | None = None


class OutcomeDeclaration(StrictModel):
    identifier: str
    cardinality: Cardinality = "single"
    baseType: Literal["identifier", "string", "integer", "float", "boolean"]
    defaultValue: Scalar | None = None


class Feedback(StrictModel):
    correct: str
    incorrect: str


class AssessmentItemInput(StrictModel):
    identifier: str = Field(min_length=1)
    title: str
    body: str
    widgets: dict[str, Widget] = {}
    interactions: dict[str, Interaction] = {}
    responseDeclarations: list[ResponseDeclaration] = Field(min_length=1)
    outcomeDeclarations: list[OutcomeDeclaration] = []
    feedback: Feedback

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v


class StimulusInput(StrictModel):
    identifier: str = Field(min_length=1)
    title: str
    body: str
    widgets: dict[str, Widget] = {}

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v


class AssessmentTestInput(StrictModel):
    """An assessment test whose sections each draw one item from a bucket."""

    identifier: str = Field(min_length=1)
    title: str = Field(min_length=1)
    sections: list[list[str]] = Field(min_length=1)
