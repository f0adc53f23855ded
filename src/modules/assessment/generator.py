"""Turn generators - produce the assistant turn the progression engine asks for.

Turns are parsed into typed schemas so a generator can only ever hand back
a well-formed text, multiple-choice or ranking turn. Whether the produced
type matches the requested one is checked by the TurnCoordinator, never
inferred from free text.
"""

import json
import logging
import re
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from src.modules.assessment.interface import Answer, AnswerType, TurnRequest
from src.modules.llm.service import LLMService
from src.shared.constants import MAX_CHOICE_OPTIONS, MIN_CHOICE_OPTIONS, RANKING_ITEM_COUNT

logger = logging.getLogger(__name__)


# ===================
# Turn Schemas
# ===================


class TurnOption(BaseModel):
    """A selectable option or rankable item."""

    id: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


class _BaseTurn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(..., min_length=1)

    @property
    def answer_type(self) -> AnswerType:
        return AnswerType(self.type)

    def to_answer(self) -> Answer:
        """Wrap this turn as the answer recorded by the progression engine."""
        return Answer(type=self.answer_type, payload=self.model_dump(by_alias=True))


class TextTurn(_BaseTurn):
    """Open-ended question answered in free text."""

    type: Literal["text"] = "text"


class MultipleChoiceTurn(_BaseTurn):
    """Question with a single selectable option."""

    type: Literal["multiple_choice"] = "multiple_choice"
    question: str = Field(..., min_length=1)
    options: list[TurnOption] = Field(..., min_length=MIN_CHOICE_OPTIONS, max_length=MAX_CHOICE_OPTIONS)


class RankingTurn(_BaseTurn):
    """Question asking for a full ordering of a fixed set of items."""

    type: Literal["ranking"] = "ranking"
    question: str = Field(..., min_length=1)
    items: list[TurnOption] = Field(..., min_length=RANKING_ITEM_COUNT, max_length=RANKING_ITEM_COUNT)
    total_ranks: int = Field(
        default=RANKING_ITEM_COUNT,
        alias="totalRanks",
        ge=RANKING_ITEM_COUNT,
        le=RANKING_ITEM_COUNT,
    )


GeneratedTurn = Annotated[
    Union[TextTurn, MultipleChoiceTurn, RankingTurn],
    Field(discriminator="type"),
]

_turn_adapter: TypeAdapter = TypeAdapter(GeneratedTurn)


def parse_turn(data: dict[str, Any]) -> GeneratedTurn:
    """Validate a raw turn dict against the turn schemas.

    Raises:
        pydantic.ValidationError: If the dict is not a well-formed turn
    """
    return _turn_adapter.validate_python(data)


# ===================
# LLM Generator
# ===================

SYSTEM_PROMPT = (
    "You are Atlas, a career guidance assistant. You help users explore career "
    "paths through a short structured assessment of thoughtful questions. "
    "Always reply with a single JSON object and nothing else."
)

_SHAPES: dict[AnswerType, str] = {
    AnswerType.TEXT: """{
    "type": "text",
    "content": "A short acknowledgement followed by one open-ended question ending in '?'"
}""",
    AnswerType.MULTIPLE_CHOICE: """{
    "type": "multiple_choice",
    "content": "A short acknowledgement of the user's last answer",
    "question": "The question to ask",
    "options": [{"id": "a", "text": "..."}, {"id": "b", "text": "..."}]
}
Provide between 2 and 4 options.""",
    AnswerType.RANKING: """{
    "type": "ranking",
    "content": "A short acknowledgement of the user's last answer",
    "question": "What the user should rank",
    "items": [{"id": "item1", "text": "..."}, {"id": "item2", "text": "..."},
              {"id": "item3", "text": "..."}, {"id": "item4", "text": "..."}],
    "totalRanks": 4
}
Provide exactly 4 items.""",
}

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")


def _render_history(history: tuple[dict[str, Any], ...]) -> str:
    lines = []
    for message in history:
        content = message.get("content")
        if message.get("role") == "assistant":
            if isinstance(content, dict):
                content = " ".join(
                    str(content[key]) for key in ("content", "question") if content.get(key)
                )
            lines.append(f"Assistant: {content}")
        else:
            lines.append(f"User: {content}")
    return "\n".join(lines)


class LLMTurnGenerator:
    """Asks the LLM for a turn of the required type and parses it strictly."""

    def __init__(self, llm_service: LLMService) -> None:
        self._llm = llm_service

    def build_prompt(self, request: TurnRequest) -> str:
        conversation = ""
        if request.history:
            conversation = f"Conversation so far:\n{_render_history(request.history)}\n\n"
        prompt = (
            f"Assessment section: {request.section} "
            f"(question {request.question_index + 1} of this section, "
            f"{request.questions_completed}/{request.total_questions} answered overall).\n\n"
            f"{conversation}"
            f"The user said:\n{request.message}\n\n"
            f"Your reply MUST be of type \"{request.required_type.value}\" and match this JSON shape:\n"
            f"{_SHAPES[request.required_type]}"
        )
        if request.previous_error:
            prompt += (
                f"\n\nYour previous reply was rejected: {request.previous_error}. "
                f"Respond again with type \"{request.required_type.value}\"."
            )
        return prompt

    async def generate(self, request: TurnRequest) -> GeneratedTurn | None:
        response = await self._llm.complete(
            prompt=self.build_prompt(request),
            system_prompt=SYSTEM_PROMPT,
        )
        return self.parse_response(response.content)

    def parse_response(self, content: str) -> GeneratedTurn | None:
        """Parse the model's reply; None when it is not a well-formed turn."""
        content = content.strip()
        if "```" in content:
            match = _FENCED_JSON.search(content)
            if match:
                content = match.group(1)
        try:
            return parse_turn(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"LLM turn could not be parsed: {e}")
            return None


# ===================
# Fallback Generator
# ===================

_FALLBACK_TURNS: dict[str, list[dict[str, Any]]] = {
    "introduction": [
        {
            "type": "text",
            "content": "Welcome! Could you tell me a little about yourself and what brings you here today?",
        },
    ],
    "interestExploration": [
        {
            "type": "multiple_choice",
            "content": "Thanks for sharing. Let's explore what draws you in.",
            "question": "Which kind of work sounds most interesting to you?",
            "options": [
                {"id": "a", "text": "Building and fixing things"},
                {"id": "b", "text": "Analyzing data and finding patterns"},
                {"id": "c", "text": "Helping and teaching people"},
                {"id": "d", "text": "Creating designs and content"},
            ],
        },
        {
            "type": "multiple_choice",
            "content": "Good to know.",
            "question": "Which of these would you most enjoy learning next?",
            "options": [
                {"id": "a", "text": "A programming language"},
                {"id": "b", "text": "Statistics or data tools"},
                {"id": "c", "text": "Leading and coaching others"},
                {"id": "d", "text": "Visual or product design"},
            ],
        },
    ],
    "workStyle": [
        {
            "type": "multiple_choice",
            "content": "Now let's look at how you like to work.",
            "question": "Which environment helps you do your best work?",
            "options": [
                {"id": "a", "text": "Independently with deep focus"},
                {"id": "b", "text": "In a small, close team"},
                {"id": "c", "text": "Across many people and teams"},
            ],
        },
        {
            "type": "ranking",
            "content": "Let's prioritize these aspects.",
            "question": "Please rank these items in order of importance to you:",
            "items": [
                {"id": "item1", "text": "Flexible schedule"},
                {"id": "item2", "text": "Clear structure and goals"},
                {"id": "item3", "text": "Collaboration with others"},
                {"id": "item4", "text": "Variety in daily tasks"},
            ],
            "totalRanks": 4,
        },
    ],
    "technicalAptitude": [
        {
            "type": "multiple_choice",
            "content": "Let's talk about technical work.",
            "question": "How comfortable are you with technical problem solving?",
            "options": [
                {"id": "a", "text": "Very comfortable, I seek it out"},
                {"id": "b", "text": "Comfortable with some guidance"},
                {"id": "c", "text": "I prefer to avoid it"},
            ],
        },
        {
            "type": "ranking",
            "content": "Let's prioritize these aspects.",
            "question": "Please rank these items in order of importance to you:",
            "items": [
                {"id": "item1", "text": "Learning new technologies"},
                {"id": "item2", "text": "Solving complex problems"},
                {"id": "item3", "text": "Working with others"},
                {"id": "item4", "text": "Building practical solutions"},
            ],
            "totalRanks": 4,
        },
    ],
    "careerValues": [
        {
            "type": "multiple_choice",
            "content": "Almost done. Let's talk about what matters to you.",
            "question": "What matters most to you in a career?",
            "options": [
                {"id": "a", "text": "Financial security"},
                {"id": "b", "text": "Making an impact"},
                {"id": "c", "text": "Continuous growth"},
                {"id": "d", "text": "Work-life balance"},
            ],
        },
        {
            "type": "multiple_choice",
            "content": "That's helpful.",
            "question": "Where would you like to be in five years?",
            "options": [
                {"id": "a", "text": "Leading a team"},
                {"id": "b", "text": "A recognized expert in my field"},
                {"id": "c", "text": "Running my own venture"},
            ],
        },
        {
            "type": "text",
            "content": "Could you tell me more about your career goals and aspirations?",
        },
    ],
}

_GENERIC_FALLBACKS: dict[AnswerType, dict[str, Any]] = {
    AnswerType.TEXT: {
        "type": "text",
        "content": "Could you tell me more about your career goals and aspirations?",
    },
    AnswerType.MULTIPLE_CHOICE: {
        "type": "multiple_choice",
        "content": "I need to better understand your preferences.",
        "question": "Which option best describes your interest?",
        "options": [
            {"id": "a", "text": "Tell me more about your interests"},
            {"id": "b", "text": "Let's explore a different topic"},
            {"id": "c", "text": "Move on to the next question"},
        ],
    },
    AnswerType.RANKING: _FALLBACK_TURNS["technicalAptitude"][1],
}


class FallbackTurnGenerator:
    """Deterministic canned turns, used when LLM generation is disabled."""

    async def generate(self, request: TurnRequest) -> GeneratedTurn:
        return self.turn_for(request.section, request.question_index, request.required_type)

    def turn_for(self, section: str, index: int, required_type: AnswerType) -> GeneratedTurn:
        candidates = _FALLBACK_TURNS.get(section, [])
        if index < len(candidates) and candidates[index]["type"] == required_type.value:
            return parse_turn(candidates[index])
        return parse_turn(_GENERIC_FALLBACKS[required_type])
