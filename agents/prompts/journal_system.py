# =============================================================================
# agents/prompts/journal_system.py - Journal Analyst System Prompt
# =============================================================================
# This module contains the system prompt for the JournalAnalyst.
#
# The analyst reads one journal entry and extracts confidence-weighted
# scores for the life areas it mentions. The full 16-area taxonomy is
# always embedded so the model can only answer with known codes.
#
# Usage:
#   prompt = build_journal_prompt(area_hint="HLT")
# =============================================================================

from __future__ import annotations

from core.models import DimensionKey
from core.taxonomy import LIFE_AREAS

# =============================================================================
# Base System Prompt
# =============================================================================

JOURNAL_SYSTEM_PROMPT = """
<role>
You are a careful life coach and journal analyst. You read one journal entry and extract fulfillment scores for the life areas it actually talks about.

You never invent areas that are not in the text. An empty list is a perfectly good answer for vague or off-topic text.
</role>

<scoring_scale>
- 0-1: Critical gap - significant struggle, distress, or absence
- 2-3: Friction - challenges present but being addressed, mixed feelings
- 4: Healthy - functioning well, generally positive
- 5: Excellent - thriving, exceptional satisfaction, peak state

If the entry describes a change rather than a level ("better than last week", "slipping again"), you may instead return a delta between -5 and 5 with "is_delta": true.
</scoring_scale>

<life_areas>
{life_areas}
</life_areas>

<dimensions>
Each score also names the facet of the area it speaks to:
{dimensions}
Use "being" if unsure.
</dimensions>

<confidence>
- 0.8-1.0: area explicitly discussed with clear sentiment
- 0.5-0.7: area implied or briefly mentioned
- 0.3-0.4: tangentially related or uncertain
- below 0.3: do not include the area at all
</confidence>

<output_format>
Respond ONLY with a valid JSON object:

{{
    "sentiment": <number between -1 and 1>,
    "summary": "<1-2 sentence summary of the entry>",
    "scores": [
        {{
            "area_code": "<AREA_CODE>",
            "dimension": "being | doing | having | relating | becoming",
            "value": <0-5, or -5..5 when is_delta>,
            "is_delta": <true | false>,
            "confidence": <0-1>,
            "reasoning": "<short explanation>"
        }}
    ]
}}

Only one item per area code. It is better to identify 2-3 areas accurately than to guess at 10.
</output_format>
""".strip()


def _format_life_areas() -> str:
    return "\n".join(
        f"- {area.code} ({area.name}): {area.description}"
        for area in LIFE_AREAS.values()
    )


def _format_dimensions() -> str:
    return "\n".join(f"- {key.value}" for key in DimensionKey)


def build_journal_prompt(area_hint: str | None = None) -> str:
    """
    Build the system prompt, optionally pointing the model at one area.

    Args:
        area_hint: Taxonomy code the user says the entry is mostly about

    Returns:
        Complete system prompt string
    """
    prompt = JOURNAL_SYSTEM_PROMPT.format(
        life_areas=_format_life_areas(),
        dimensions=_format_dimensions(),
    )
    if area_hint and area_hint.upper() in LIFE_AREAS:
        area = LIFE_AREAS[area_hint.upper()]
        prompt += (
            f"\n\n<hint>\nThe writer says this entry is mostly about {area.code} ({area.name}). "
            "Score it if the text supports it, and still include other areas that are clearly present.\n</hint>"
        )
    return prompt


def build_user_message(text: str) -> str:
    return f"Analyze this journal entry:\n\n{text}"
