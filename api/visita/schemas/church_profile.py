"""Church profile field schema (version 1).

The classification tables in visita.core.field_classification are kept in
lockstep with ChurchProfileFields; the coverage check at the bottom of this
module refuses to import if they drift apart.
"""
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from visita.core.errors import ChurchValidationError
from visita.core.field_classification import check_classification_coverage
from visita.core.time import current_year

PROFILE_SCHEMA_VERSION = 1

MIN_FOUNDING_YEAR = 1500
PHONE_PATTERN = r"^(\+63|0)?[0-9]{10}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
TIME_PATTERN = r"^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$"

ArchitecturalStyle = Literal[
    "baroque", "gothic", "romanesque", "byzantine", "neoclassical", "modern", "mixed", "other"
]
ChurchClassification = Literal[
    "ICP", "NCT", "non_heritage", "parish_church", "pilgrimage_site", "historical_shrine"
]
ReligiousClassification = Literal[
    "diocesan_shrine", "jubilee_church", "papal_basilica_affinity", "none"
]
Weekday = Literal["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class _Closed(BaseModel):
    model_config = ConfigDict(extra="forbid")


class Coordinates(_Closed):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class ContactInfo(_Closed):
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    address: Optional[str] = Field(None, max_length=200)
    website: Optional[str] = None


class MassSchedule(_Closed):
    day: Weekday
    time: str = Field(..., pattern=TIME_PATTERN)
    end_time: Optional[str] = Field(None, pattern=TIME_PATTERN)
    type: Optional[str] = None  # Sunday Mass, Daily Mass, etc.
    language: Optional[str] = None
    is_fb_live: Optional[bool] = None


class PriestAssignment(_Closed):
    name: str = Field(..., min_length=1, max_length=100)
    start_date: str  # ISO date or year
    end_date: Optional[str] = None  # None while currently assigned
    is_current: bool = False
    notes: Optional[str] = None


class ChurchPhoto(_Closed):
    url: str
    id: Optional[str] = None
    name: Optional[str] = None
    upload_date: Optional[str] = None
    status: Optional[Literal["pending", "approved"]] = None


class ChurchDocument(_Closed):
    url: str
    name: Optional[str] = None


class HistoricalDetails(_Closed):
    religious_classifications: List[str] = []


class ChurchProfileFields(_Closed):
    """Every editable profile attribute. All optional so updates can be partial."""

    # Identification
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    full_name: Optional[str] = Field(None, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    municipality: Optional[str] = Field(None, max_length=50)

    # History
    founding_year: Optional[int] = None
    founders: Optional[str] = Field(None, max_length=200)
    key_figures: Optional[List[str]] = None
    historical_background: Optional[str] = None
    description: Optional[str] = Field(None, max_length=1000)

    # Architecture and heritage
    architectural_style: Optional[ArchitecturalStyle] = None
    classification: Optional[ChurchClassification] = None
    religious_classification: Optional[ReligiousClassification] = None
    historical_details: Optional[HistoricalDetails] = None
    cultural_significance: Optional[str] = None
    preservation_history: Optional[str] = None
    restoration_history: Optional[str] = None
    architectural_features: Optional[str] = None
    heritage_information: Optional[str] = None
    coordinates: Optional[Coordinates] = None

    # Operational
    contact_info: Optional[ContactInfo] = None
    mass_schedules: Optional[List[MassSchedule]] = Field(None, max_length=14)
    assigned_priest: Optional[str] = Field(None, max_length=100)
    priest_history: Optional[List[PriestAssignment]] = None
    assistant_priests: Optional[List[str]] = None
    feast_day: Optional[str] = None

    # Media
    images: Optional[List[str]] = None
    photos: Optional[List[Union[ChurchPhoto, str]]] = None
    documents: Optional[List[Union[ChurchDocument, str]]] = None
    virtual_tour_360: Optional[List[str]] = None

    # Tags
    tags: Optional[List[str]] = Field(None, max_length=10)
    category: Optional[str] = None

    @field_validator("founding_year")
    @classmethod
    def check_founding_year(cls, v: Optional[int]) -> Optional[int]:
        if v is None:
            return v
        if v < MIN_FOUNDING_YEAR:
            raise ValueError(f"Founding year must be {MIN_FOUNDING_YEAR} or later")
        if v > current_year():
            raise ValueError("Founding year cannot be in the future")
        return v

    @field_validator("tags")
    @classmethod
    def check_tag_length(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v and any(len(tag) > 50 for tag in v):
            raise ValueError("Tags must be 50 characters or fewer")
        return v


PROFILE_FIELD_NAMES = tuple(ChurchProfileFields.model_fields)


def validate_profile_fields(submitted: Any) -> Dict[str, Any]:
    """
    Validate submitted profile data and return it as plain JSON values.

    Only the keys present in `submitted` are returned, so partial updates stay
    partial; an explicit None is kept as a request to clear the field.

    Raises ChurchValidationError with messages grouped by field.
    """
    if not isinstance(submitted, dict):
        raise ChurchValidationError({"fields": ["Profile data must be an object"]})

    try:
        parsed = ChurchProfileFields.model_validate(submitted)
    except ValidationError as exc:
        errors: Dict[str, List[str]] = {}
        for err in exc.errors():
            loc = err.get("loc") or ("fields",)
            field = str(loc[0])
            message = "Unknown field" if err.get("type") == "extra_forbidden" else err["msg"]
            errors.setdefault(field, []).append(message)
        raise ChurchValidationError(errors) from exc

    return parsed.model_dump(mode="json", exclude_unset=True)


check_classification_coverage(PROFILE_FIELD_NAMES)
