"""Turn generation for debates."""

import logging
from typing import Protocol

from pydantic import BaseModel

from .models import Position


logger = logging.getLogger("arena:generation")


class PreviousTurn(BaseModel):
    speaker: str
    message: str


class DebateContext(BaseModel):
    """What a model needs to know to produce its next turn."""

    topic: str
    position: Position
    opponent_position: Position
    previous_turns: list[PreviousTurn] = []


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class LLMResponse(BaseModel):
    content: str
    model: str
    usage: Usage | None = None


class ResponseGenerator(Protocol):
    async def generate(self, model: str, context: DebateContext) -> LLMResponse: ...


def build_prompts(context: DebateContext) -> tuple[str, str]:
    """Build the system prompt and user prompt for a debate turn.

    Args:
        context: Debate context for the speaking model

    Returns:
        Tuple of (system_prompt, prompt)
    """
    position = context.position.value
    system_prompt = (
        f'You are participating in a formal debate on the topic: "{context.topic}".\n'
        f"You are arguing for the {position} position. "
        f"Your opponent is arguing for the {context.opponent_position.value} position.\n"
        "Be persuasive, use logical arguments, cite evidence when possible, "
        "and directly address your opponent's points.\n"
        "Keep your response focused and under 200 words."
    )

    prompt = f"Topic: {context.topic}\nYour position: {position}\n\n"
    if context.previous_turns:
        prompt += "Previous arguments:\n"
        for turn in context.previous_turns:
            prompt += f"{turn.speaker}: {turn.message}\n\n"
        prompt += "Now provide your response, addressing the opponent's latest points:"
    else:
        prompt += "Please provide your opening argument:"

    return system_prompt, prompt


MOCK_RESPONSES = {
    Position.PRO: [
        "The evidence overwhelmingly supports {topic}. Where this approach has "
        "been adopted, productivity and satisfaction both rise, and the gains "
        "hold up over time rather than fading after the first year.",
        "My opponent fails to consider the long-term economic benefits. "
        "Organizations that commit to this approach reduce operational costs "
        "while maintaining or improving quality. This is proven practice, not theory.",
        "Let me address the counterargument directly. Traditional approaches "
        "have their place, but they are increasingly obsolete, and most leading "
        "organizations have already moved on with measurable improvements.",
    ],
    Position.CON: [
        "While the proposition sounds appealing, we must examine the hidden "
        "costs of {topic}. Many implementations fail to deliver the promised "
        "benefits, and collaboration, mentorship and culture suffer.",
        "The studies cited by my opponent cherry-pick data. Taken together, "
        "the research shows mixed results at best, with real harm to innovation "
        "and team cohesion.",
        "We cannot ignore the wider implications. This approach widens "
        "inequality and narrows opportunities for newcomers. Short-term gains "
        "pale next to long-term sustainability concerns.",
    ],
}


class MockResponseGenerator:
    """Generator returning canned arguments for each position.

    The response is picked from the model name and the number of previous
    turns, so the same debate always produces the same text.
    """

    async def generate(self, model: str, context: DebateContext) -> LLMResponse:
        _, prompt = build_prompts(context)
        responses = MOCK_RESPONSES[context.position]
        index = (len(model) + len(context.previous_turns)) % len(responses)
        content = responses[index].format(topic=context.topic.lower())

        prompt_tokens = len(prompt.split())
        completion_tokens = len(content.split())
        return LLMResponse(
            content=content,
            model=model,
            usage=Usage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )


class FallbackResponseGenerator:
    """Tries a primary generator and falls back to another on any error."""

    def __init__(
        self,
        primary: ResponseGenerator,
        fallback: ResponseGenerator | None = None,
    ):
        self.primary = primary
        self.fallback = fallback or MockResponseGenerator()

    async def generate(self, model: str, context: DebateContext) -> LLMResponse:
        try:
            return await self.primary.generate(model, context)
        except Exception as error:
            logger.warning(f"Generation failed for {model}, using fallback: {error}")
            return await self.fallback.generate(model, context)


def fallback_message(position: Position, topic: str, opening: bool) -> str:
    """Fixed turn text used when no response could be generated at all."""
    note = "[Note: Using fallback response due to API error]"
    if opening:
        return (
            f'{note} As an advocate for the {position.value} position on "{topic}", '
            f"I present the following arguments: The {position.value} stance offers "
            "compelling benefits that deserve careful consideration. Evidence from "
            "various studies and real-world applications supports this position."
        )
    return (
        f"{note} Addressing the previous arguments, I maintain that the "
        f"{position.value} position remains stronger. The evidence presented thus "
        "far supports this conclusion, and the practical implications clearly "
        "favor this approach. While respecting opposing viewpoints, the data and "
        "logic point decisively in this direction."
    )
