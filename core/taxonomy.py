# =============================================================================
# core/taxonomy.py - Life Area Taxonomy
# =============================================================================
# The 16 canonical life-area codes. The journal analyst sends this
# taxonomy to the model and rejects any code not listed here; users' areas
# are matched to analysis results by `code`.
# =============================================================================

from __future__ import annotations

from typing import NamedTuple


class TaxonomyArea(NamedTuple):
    code: str
    name: str
    description: str


LIFE_AREAS: dict[str, TaxonomyArea] = {
    area.code: area
    for area in (
        TaxonomyArea(
            "WRK", "Work/Enterprise",
            "Professional work, business operations, enterprise activities, career progress, "
            "job satisfaction, work output",
        ),
        TaxonomyArea(
            "PUR", "Purpose/Calling",
            "Life mission, calling, deeper purpose alignment, meaningful contribution, sense of direction",
        ),
        TaxonomyArea(
            "MUS", "Music (Creative)",
            "Musical composition, production, creative musical expression, songwriting, performances",
        ),
        TaxonomyArea(
            "WRT", "Writing (Creative)",
            "Written creative works, manuscripts, publications, blogging, journaling, books",
        ),
        TaxonomyArea(
            "SPE", "Public Speaking",
            "Public presentations, talks, speaking engagements, teaching, workshops",
        ),
        TaxonomyArea(
            "LRN", "Learning & Growth",
            "Continuous learning, skill development, personal growth, courses, reading, education",
        ),
        TaxonomyArea(
            "HLT", "Health & Vitality",
            "Physical health, fitness, nutrition, vitality, sleep, exercise, medical care",
        ),
        TaxonomyArea(
            "SPF", "Spiritual Development",
            "Spiritual practices, connection, inner development, meditation, prayer, mindfulness",
        ),
        TaxonomyArea(
            "FIN", "Finance & Wealth Health",
            "Financial security, wealth building, fiscal health, budgeting, investments, income",
        ),
        TaxonomyArea(
            "FAM", "Family",
            "Family relationships, boundaries, rituals, parents, siblings, children, extended family",
        ),
        TaxonomyArea(
            "FRD", "Friendship",
            "Close friendships, reciprocity, connection, social bonds, friend gatherings",
        ),
        TaxonomyArea(
            "COM", "Community",
            "Community engagement, service, belonging, volunteering, local involvement",
        ),
        TaxonomyArea(
            "LAW", "Law & Justice",
            "Legal matters, justice pursuit, compliance, contracts, rights, advocacy",
        ),
        TaxonomyArea(
            "INT", "Integrity & Recovery",
            "Personal integrity, promise-keeping, recovery, honesty, ethical alignment",
        ),
        TaxonomyArea(
            "FOR", "Forgiveness & Reconciliation",
            "Forgiveness work, amends, reconciliation, letting go, healing relationships",
        ),
        TaxonomyArea(
            "AUT", "Autobiography (Narrative)",
            "Life narrative, story coherence, meaning-making, life review, legacy",
        ),
    )
}


def is_known_code(code: str) -> bool:
    return code.upper() in LIFE_AREAS


def area_name(code: str) -> str:
    """Display name for a code, or the code itself if unknown."""
    area = LIFE_AREAS.get(code.upper())
    return area.name if area else code
