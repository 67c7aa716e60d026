"""Prompt templates for scene classification.

Responsibilities:
- Build the system and user prompts for page and spread classification.
- Cap per-page excerpt length so prompt size stays bounded.
"""

from __future__ import annotations

from collections.abc import Sequence

MAX_EXCERPT_CHARS = 2000

_DESCRIPTOR_SCHEMA = (
    "{\n"
    '  "mood": "value",\n'
    '  "setting": "value",\n'
    '  "time_of_day": "value",\n'
    '  "weather": "value",\n'
    '  "activity_level": "value",\n'
    '  "atmosphere": "value",\n'
    '  "dominant_elements": "value, value",\n'
    '  "scene_type": "value"\n'
    "}"
)


class PromptLibrary:
    """Build prompt strings for classification requests."""

    def classification_system_prompt(self) -> str:
        """Return the system prompt enforcing JSON-only scene descriptors."""

        return (
            "You are a literary scene analyst who labels book passages for ambient sound "
            "design. Respond only with a single JSON object and no commentary."
        )

    def classify_page_prompt(self, page_text: str) -> str:
        """Return the classification prompt for one page excerpt."""

        excerpt = page_text[:MAX_EXCERPT_CHARS]
        return (
            "Analyze the following text excerpt from a book and classify the scene.\n\n"
            f"Text:\n{excerpt}\n\n"
            f"{self._attribute_guide()}"
        )

    def classify_spread_prompt(
        self, page_numbers: Sequence[int], page_texts: Sequence[str]
    ) -> str:
        """Return one classification prompt covering a 2-page spread."""

        sections = [
            f"--- Page {page_number} ---\n{text[:MAX_EXCERPT_CHARS]}"
            for page_number, text in zip(page_numbers, page_texts)
        ]
        joined = "\n\n".join(sections)
        return (
            "Analyze the following facing pages from a book as one reading unit and "
            "classify the scene they depict together.\n\n"
            f"{joined}\n\n"
            f"{self._attribute_guide()}"
        )

    @staticmethod
    def _attribute_guide() -> str:
        """Describe the expected descriptor attributes and output shape."""

        return (
            "Provide these attributes:\n"
            "- mood: emotional tone (e.g. joyful, tense, melancholic, peaceful, mysterious)\n"
            "- setting: location (e.g. forest, hall, underground, city, library, meadow)\n"
            "- time_of_day: morning, afternoon, evening, night, or unknown\n"
            "- weather: sunny, rainy, stormy, cloudy, snowy, clear, or unknown\n"
            "- activity_level: one of calm, moderate, active, energetic, high\n"
            "- atmosphere: overall feeling (e.g. suspenseful, whimsical, contemplative)\n"
            "- dominant_elements: comma-separated sound sources (e.g. water, wind, birds)\n"
            "- scene_type: dialogue, action, description, or transition\n\n"
            "Use \"unknown\" when an attribute cannot be determined.\n"
            f"Respond ONLY with valid JSON in this exact format:\n{_DESCRIPTOR_SCHEMA}"
        )
