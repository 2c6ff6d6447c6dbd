"""
Church field categorization for staged updates.

When a parish updates an APPROVED church:
1. DIRECT_PUBLISH_FIELDS are applied immediately to the live profile
2. REVERIFICATION_REQUIRED_FIELDS are held in a pending change set until a
   reviewer approves them

Heritage and identity information needs Chancery (and Museum, for heritage
churches) review. Operational information such as mass schedules and contact
details changes often and publishes immediately. 360 tours and photos do not
require re-verification.

The tables here must cover exactly the fields of ChurchProfileFields;
check_classification_coverage() enforces that at import time.
"""
import enum
from typing import Dict, Iterable, List, Tuple


class FieldTier(str, enum.Enum):
    """Sensitivity tier of a profile field."""
    DIRECT_PUBLISH = "direct_publish"
    REQUIRES_REVIEW = "requires_review"


REVERIFICATION_REQUIRED_FIELDS: Tuple[str, ...] = (
    # Core identification
    "name",
    "full_name",
    "location",
    "municipality",

    # Historical information
    "founding_year",
    "founders",
    "key_figures",
    "historical_background",
    "description",

    # Architectural/heritage classification
    "architectural_style",
    "classification",
    "religious_classification",
    "historical_details",

    # Heritage-specific (Museum Researcher validation)
    "cultural_significance",
    "preservation_history",
    "restoration_history",
    "architectural_features",
    "heritage_information",

    # Map placement
    "coordinates",
)

DIRECT_PUBLISH_FIELDS: Tuple[str, ...] = (
    # Contact and scheduling
    "contact_info",
    "mass_schedules",
    "assigned_priest",
    "priest_history",
    "assistant_priests",
    "feast_day",

    # Media
    "images",
    "photos",
    "documents",
    "virtual_tour_360",

    # Metadata/tags
    "tags",
    "category",
)

FIELD_LABELS: Dict[str, str] = {
    "name": "Church Name",
    "full_name": "Full Name",
    "location": "Location",
    "municipality": "Municipality",
    "founding_year": "Founding Year",
    "founders": "Founders",
    "key_figures": "Key Figures",
    "historical_background": "Historical Background",
    "description": "Description",
    "architectural_style": "Architectural Style",
    "classification": "Heritage Classification",
    "religious_classification": "Religious Classification",
    "historical_details": "Historical Details",
    "cultural_significance": "Cultural Significance",
    "preservation_history": "Preservation History",
    "restoration_history": "Restoration History",
    "architectural_features": "Architectural Features",
    "heritage_information": "Heritage Information",
    "coordinates": "Map Coordinates",
    "contact_info": "Contact Information",
    "mass_schedules": "Mass Schedules",
    "assigned_priest": "Assigned Priest",
    "priest_history": "Priest Assignment History",
    "assistant_priests": "Assistant Priests",
    "feast_day": "Feast Day",
    "images": "Images",
    "photos": "Photos",
    "documents": "Documents",
    "virtual_tour_360": "360° Virtual Tour",
    "tags": "Tags",
    "category": "Category",
}

_DIRECT_PUBLISH = frozenset(DIRECT_PUBLISH_FIELDS)


def classify(field_name: str) -> FieldTier:
    """Return the tier for a field.

    Unknown fields require review; an unrecognized field is never
    auto-published.
    """
    if field_name in _DIRECT_PUBLISH:
        return FieldTier.DIRECT_PUBLISH
    return FieldTier.REQUIRES_REVIEW


def requires_verification(field_name: str) -> bool:
    """True if a change to this field must wait for reviewer approval."""
    return classify(field_name) is FieldTier.REQUIRES_REVIEW


def get_field_label(field_name: str) -> str:
    """Human-readable label for a field key, falling back to the key."""
    return FIELD_LABELS.get(field_name, field_name)


def get_field_labels(field_names: Iterable[str]) -> List[str]:
    return [get_field_label(name) for name in field_names]


def partition_fields(field_names: Iterable[str]) -> Tuple[List[str], List[str]]:
    """
    Split field names into (to_publish, to_stage), preserving input order.

    Every name lands in exactly one of the two lists.
    """
    to_publish: List[str] = []
    to_stage: List[str] = []
    for name in field_names:
        if classify(name) is FieldTier.DIRECT_PUBLISH:
            to_publish.append(name)
        else:
            to_stage.append(name)
    return to_publish, to_stage


def classification_table() -> List[Dict[str, str]]:
    """Every known field with its tier and label, review fields first."""
    return [
        {"field": name, "tier": classify(name).value, "label": get_field_label(name)}
        for name in REVERIFICATION_REQUIRED_FIELDS + DIRECT_PUBLISH_FIELDS
    ]


def check_classification_coverage(schema_fields: Iterable[str]) -> None:
    """
    Verify the tier tables classify every schema field exactly once.

    Raises RuntimeError listing unclassified, doubly classified and stale
    entries.
    """
    schema = set(schema_fields)
    review = set(REVERIFICATION_REQUIRED_FIELDS)
    direct = set(DIRECT_PUBLISH_FIELDS)

    problems = []
    both = review & direct
    if both:
        problems.append(f"classified twice: {sorted(both)}")
    missing = schema - review - direct
    if missing:
        problems.append(f"not classified: {sorted(missing)}")
    stale = (review | direct) - schema
    if stale:
        problems.append(f"classified but not in schema: {sorted(stale)}")
    unlabeled = schema - set(FIELD_LABELS)
    if unlabeled:
        problems.append(f"missing labels: {sorted(unlabeled)}")

    if problems:
        raise RuntimeError("Field classification out of sync: " + "; ".join(problems))
