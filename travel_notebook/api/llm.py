"""LLM helper functions for the travel notebook.

Builds the itinerary prompt and sends it to OpenAI Chat Completions. The
model replies in the plain-text format that ``parser.parse_itinerary_response``
reads; nothing here interprets the reply.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from openai import APIConnectionError, APITimeoutError, OpenAI, OpenAIError, RateLimitError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from travel_notebook.api.config import get_openai_api_key, get_openai_model, get_sync_config
from travel_notebook.api.errors import GenerationError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert travel planner who writes vivid, practical day-by-day "
    "itineraries and always follows the requested output format exactly."
)

# ---------------------------------------------------------------------------
# OpenAI client initialisation
# ---------------------------------------------------------------------------

_client: Optional[OpenAI] = None


def _get_client() -> OpenAI:
    """Return a cached OpenAI client."""
    global _client
    if _client is None:
        _client = OpenAI(api_key=get_openai_api_key())
    return _client


# ---------------------------------------------------------------------------
# Prompt construction helpers
# ---------------------------------------------------------------------------

def build_itinerary_prompt(
    destination: str,
    start_date: str,
    end_date: str,
    total_days: int,
    interests: Sequence[str],
    travel_style: str,
    additional_notes: Optional[str] = None,
) -> str:
    """User prompt asking for the line-oriented itinerary format."""
    interest_list = ", ".join(interests)
    notes_line = f"Additional Notes: {additional_notes}\n" if additional_notes else ""

    return f"""Create a detailed {total_days}-day travel itinerary for {destination} from {start_date} to {end_date}.

Travel Style: {travel_style}
Interests: {interest_list}
{notes_line}
Please format your response EXACTLY as follows:

ITINERARY TITLE: [Creative title for the trip]

DAY 1 - [Date: YYYY-MM-DD] - [Day Title]
[Brief day description]

**[Place Name 1]** (lat: XX.XXXXX, lng: XX.XXXXX)
[Description of the place and activities]

**[Place Name 2]** (lat: XX.XXXXX, lng: XX.XXXXX)
[Description of the place and activities]

DAY 2 - [Date: YYYY-MM-DD] - [Day Title]
[Brief day description]

**[Place Name 3]** (lat: XX.XXXXX, lng: XX.XXXXX)
[Description of the place and activities]

Continue this format for all {total_days} days.

Requirements:
- Include 3-5 places and attractions per day
- Include only the place name itself with no other additions
- Don't include transportation options unless the transport itself is the attraction
- Day title should be up to 4 words
- Don't include alternative routes or options
- Match the activities to the interests of the traveler, the season and the weather at that time of year
- Consider travel time between locations and places that might be closed on the specific day
- Each day should have a thematic focus when possible
- For each place, write a narrative description of why this traveler would want to visit, what they can do there and a little cultural or historical background
- Write in a tourist guide style, in the 2nd person, starting each paragraph with a verb ("Discover the old city...", "Hike to the top...")
- Paragraphs should be no more than 25 words for a day and no more than 40 words for a place
- In each place description, include the most recognizable name of the place surrounded by [[double square brackets]]
- For each day, provide an intro with the theme of the day and the kinds of activities
- The title of the first day must include the name of the region or city surrounded by ** (for example: **Rome**); do the same for every day that moves to a new city or region
- Traveler's interests: {interest_list}
- Match the {travel_style} budget and style
- Provide realistic latitude and longitude coordinates (5 decimal places)
- Each place name must be wrapped in **double asterisks**
- Include specific place names (restaurants, museums, attractions, etc.)
- Provide practical, actionable recommendations; short tips on getting between places and on opening hours are welcome
- Do not include any blocks other than days and places"""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

@retry(
    retry=retry_if_exception_type((APIConnectionError, APITimeoutError, RateLimitError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, max=10),
    reraise=True,
)
def _create_completion(system_prompt: str, user_prompt: str):
    cfg = get_sync_config()
    return _get_client().chat.completions.create(
        model=get_openai_model(),
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
        temperature=cfg["llm_temperature"],
        max_tokens=cfg["llm_max_tokens"],
    )


def complete(system_prompt: str, user_prompt: str) -> str:
    """Return the model's text reply.

    Raises:
        GenerationError: If the provider call fails or the reply is empty
    """
    logger.debug(f"Calling OpenAI ChatCompletion: model={get_openai_model()}")
    try:
        response = _create_completion(system_prompt, user_prompt)
    except (OpenAIError, ValueError) as exc:
        logger.error(f"OpenAI request failed: {exc}")
        raise GenerationError(f"Itinerary generation failed: {exc}") from exc

    content = response.choices[0].message.content if response.choices else None
    if not content or not content.strip():
        raise GenerationError("The model returned an empty itinerary")

    logger.info(f"Received {len(content)} characters from the model")
    return content


__all__ = ["SYSTEM_PROMPT", "build_itinerary_prompt", "complete"]
