"""Prompt templates for story analysis."""

from istory.schemas.metadata import EmotionalTone, LifeDomain

STORY_PLACEHOLDER = "{STORY_TEXT}"

_TONES = ", ".join(tone.value for tone in EmotionalTone)
_DOMAINS = ", ".join(domain.value for domain in LifeDomain)

ANALYSIS_PROMPT = f'''You are a cognitive analysis engine for a personal journaling app. Analyze the following story and extract structured metadata.

Story:
"""
{STORY_PLACEHOLDER}
"""

Extract and return ONLY valid JSON (no markdown, no code blocks, no explanation). Use this exact structure:

{{
  "themes": ["theme1", "theme2", "theme3"],
  "emotional_tone": "string",
  "life_domain": "string",
  "intensity_score": 0.0,
  "significance_score": 0.0,
  "people_mentioned": ["name1", "name2"],
  "places_mentioned": ["place1", "place2"],
  "time_references": ["reference1", "reference2"],
  "brief_insight": "A single sentence insight about this story's meaning or significance."
}}

Guidelines:
- themes: 1-5 key themes from the story (e.g., "growth", "loss", "discovery", "connection")
- emotional_tone: MUST be one of: {_TONES}
- life_domain: MUST be one of: {_DOMAINS}
- intensity_score: 0.0-1.0, how emotionally charged is this story?
- significance_score: 0.0-1.0, how important is this event to the person's life story?
- people_mentioned: Extract proper names of people mentioned (empty array if none)
- places_mentioned: Extract specific locations mentioned (empty array if none)
- time_references: Extract time references like "last summer", "when I was 12", "yesterday" (empty array if none)
- brief_insight: A compassionate, insightful one-sentence observation about the story's meaning

Return ONLY the JSON object, nothing else.'''


def build_analysis_prompt(story_text: str) -> str:
    return ANALYSIS_PROMPT.replace(STORY_PLACEHOLDER, story_text)
