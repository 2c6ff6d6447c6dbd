"""Heritage detection used to route church reviews.

A church with heritage significance must pass museum validation
(heritage_review) before it can be approved.
"""
from typing import Any, Mapping, Optional

HERITAGE_CLASSIFICATIONS = ("ICP", "NCT")

# Churches founded before this year are treated as potential heritage sites
HERITAGE_FOUNDING_YEAR_CUTOFF = 1900


def should_require_heritage_review(
    classification: Optional[str] = None,
    founding_year: Optional[int] = None,
    has_historical_documents: bool = False,
    architectural_significance: bool = False,
) -> bool:
    """
    Decide whether a church should be routed to heritage review.

    - ICP (Important Cultural Property) or NCT (National Cultural Treasure)
      classification
    - founded before 1900
    - significant historical documents attached
    - flagged as architecturally significant
    """
    if classification in HERITAGE_CLASSIFICATIONS:
        return True
    if founding_year is not None and founding_year < HERITAGE_FOUNDING_YEAR_CUTOFF:
        return True
    return bool(has_historical_documents or architectural_significance)


def is_heritage_profile(fields: Mapping[str, Any]) -> bool:
    """Apply heritage detection to a church's live profile fields."""
    return should_require_heritage_review(
        classification=fields.get("classification"),
        founding_year=fields.get("founding_year"),
        has_historical_documents=bool(fields.get("documents")),
    )


def is_heritage_church(church) -> bool:
    return is_heritage_profile(church.fields or {})
