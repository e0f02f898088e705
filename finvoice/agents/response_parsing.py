"""
Helpers for turning Gemini text into structured data.

These are pure functions so they can be tested without calling the model.
"""

import json
from typing import Any

from finvoice.errors import AIResponseParseError


RECOMMENDATIONS_MARKER = "***RECOMMENDATIONS***"


def extract_json_block(text: str) -> dict[str, Any]:
    """
    Parse the JSON object in a model response.

    Handles ```json fences and stray prose around the object.

    Raises:
        AIResponseParseError: If no JSON object can be parsed
    """
    cleaned = (text or "").replace("```json", "").replace("```", "").strip()

    candidates = [cleaned]
    start = cleaned.find("{")
    end = cleaned.rfind("}") + 1
    if start >= 0 and end > start:
        candidates.append(cleaned[start:end])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict):
            return data

    raise AIResponseParseError("AI response did not contain a JSON object", raw_text=text or "")


def split_insights_response(text: str) -> tuple[str, list[str]]:
    """
    Split an insights response into its JSON part and recommendation lines.

    The model is asked to put '***RECOMMENDATIONS***' between the two.
    Without the marker, everything is the JSON part.
    """
    json_part, _, recommendations_part = (text or "").partition(RECOMMENDATIONS_MARKER)
    recommendations = [
        line.strip()
        for line in recommendations_part.strip().split("\n")
        if line.strip()
    ]
    return json_part, recommendations


def extract_bullet_points(text: str) -> list[str]:
    """Keep lines starting with '* ', without the marker."""
    return [
        line.strip()[2:].strip()
        for line in (text or "").split("\n")
        if line.strip().startswith("* ")
    ]
