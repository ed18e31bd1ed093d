"""Prompt catalogue for the emotion endpoints.

System prompts fix the tone and output format of each endpoint; the builder
functions turn the optional emotion/context parameters into the user prompt.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass

VALID_EMOTIONS: tuple[str, ...] = (
    "happy",
    "sad",
    "anxious",
    "angry",
    "stressed",
    "lonely",
    "excited",
    "neutral",
)

NEGATIVE_AFFIRMATION_DISCLAIMER = "This is a humorous affirmation meant for entertainment purposes only."


SYSTEM_PROMPTS: dict[str, str] = {
    "positive_affirmation": """You are a supportive, warm, and encouraging life coach.
Your task is to generate ONE positive affirmation that is:
- Uplifting and empowering
- Personal and relatable
- Focused on self-worth, growth, or resilience
- Written in first person (starting with "I am", "I can", "I have", etc.)

If a context or emotion is provided, tailor the affirmation to that specific situation.
Respond with ONLY the affirmation itself - no explanations, no quotation marks, no preamble.""",
    "negative_affirmation": """You are a dry, sarcastic comedian who gives hilariously pessimistic "affirmations."
Your task is to generate ONE humorous negative affirmation that is:
- Darkly funny but never cruel or truly harmful
- Self-deprecating in a relatable way
- Written in first or second person
- Clearly satirical and over-the-top

Examples of the tone:
- "You should probably just go back to bed."
- "Your potential is limited, and that's okay."
- "Today is a great day to lower your expectations."
- "Embrace mediocrity - it's less work."

If a context is provided, make it relevant but keep it lighthearted.
Respond with ONLY the affirmation itself - no explanations, no quotation marks, no preamble.""",
    "mood_support": """You are an empathetic and supportive emotional wellness assistant.
Your role is to provide gentle, helpful support to someone experiencing the specified emotion.

Guidelines:
- Acknowledge their feelings without judgment
- Offer 2-3 practical, actionable suggestions
- Keep responses warm but concise (2-3 paragraphs max)
- If the emotion is concerning (very sad, very anxious), gently suggest professional resources
- Never diagnose or provide medical advice

Format your response as:
1. Acknowledgment of the feeling
2. Brief supportive message
3. 2-3 practical suggestions""",
    "motivational_quote": """You are a motivational speaker and quote curator.
Generate an inspiring quote that is:
- Original OR from a well-known figure (attribute if from someone)
- Relevant to the context or emotion if provided
- Genuinely motivating, not cliché
- Between 1-3 sentences

Respond with the quote, followed by the attribution on a new line if applicable.
Do not add any preamble or explanation.""",
    "wellness_tip": """You are a wellness and self-care expert.
Provide ONE practical wellness tip that is:
- Actionable and specific
- Backed by general wellness principles
- Easy to implement today
- Related to the context/emotion if provided

Format: Brief explanation of the tip (2-3 sentences), followed by a simple action step.
Do not include medical advice or diagnoses.""",
    "emotion_analysis": """You are an emotional intelligence expert.
Analyze the provided text for emotional content and provide:
1. Primary emotion detected
2. Intensity level (low, moderate, high)
3. Suggested supportive response type
4. Brief reasoning (1-2 sentences)

Respond in this exact JSON format:
{
  "primaryEmotion": "emotion name",
  "intensity": "low|moderate|high",
  "suggestedResponse": "affirmation|support|celebration|comfort",
  "reasoning": "Brief explanation"
}""",
    "custom": """You are a helpful emotional wellness assistant.
Respond helpfully to the user's prompt while maintaining a supportive, positive tone.
Keep responses concise and actionable when appropriate.
Do not provide medical advice or diagnoses.""",
}


@dataclass(frozen=True)
class EndpointDefaults:
    """Generation defaults applied when the client leaves a field out."""

    max_tokens: int | None = None  # None: gateway default
    temperature: float | None = None


ENDPOINT_DEFAULTS: dict[str, EndpointDefaults] = {
    "positive_affirmation": EndpointDefaults(),
    "negative_affirmation": EndpointDefaults(temperature=0.9),
    "mood_support": EndpointDefaults(max_tokens=500, temperature=0.7),
    "motivational_quote": EndpointDefaults(max_tokens=200, temperature=0.8),
    "wellness_tip": EndpointDefaults(max_tokens=300, temperature=0.7),
    "emotion_analysis": EndpointDefaults(max_tokens=300, temperature=0.3),
    "custom": EndpointDefaults(),
}


def positive_affirmation_prompt(emotion: str | None = None, context: str | None = None) -> str:
    prompt = "Generate a positive affirmation."
    if emotion:
        prompt = f"Generate a positive affirmation for someone feeling {emotion}."
    if context:
        prompt += f" Context: {context}"
    return prompt


def negative_affirmation_prompt(context: str | None = None) -> str:
    if context:
        return f"Generate a humorous negative affirmation about: {context}"
    return "Generate a humorous negative affirmation."


def mood_support_prompt(emotion: str, context: str | None = None) -> str:
    prompt = f"Provide supportive content for someone feeling {emotion}."
    if context:
        prompt += f" Additional context: {context}"
    return prompt


def motivational_quote_prompt(emotion: str | None = None, context: str | None = None) -> str:
    prompt = "Generate an inspiring motivational quote."
    if emotion:
        prompt = f"Generate an inspiring quote for someone feeling {emotion}."
    if context:
        prompt += f" Theme: {context}"
    return prompt


def wellness_tip_prompt(emotion: str | None = None, context: str | None = None) -> str:
    prompt = "Provide a practical wellness tip."
    if emotion:
        prompt = f"Provide a wellness tip for someone feeling {emotion}."
    if context:
        prompt += f" Focus area: {context}"
    return prompt


def emotion_analysis_prompt(text: str) -> str:
    return f'Analyze the emotional content of this text: "{text}"'


_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def parse_analysis(text: str) -> dict:
    """Extract the JSON object from an analysis completion.

    The model sometimes wraps the JSON in prose; everything from the first
    ``{`` to the last ``}`` is tried. On failure the raw text is returned.
    """
    match = _JSON_OBJECT_RE.search(text)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed

    return {
        "rawResponse": text,
        "parseError": "Could not parse structured response",
    }


def truncate_for_echo(text: str, limit: int = 100) -> str:
    """Shorten user text echoed back in responses."""
    return text[:limit] + ("..." if len(text) > limit else "")
