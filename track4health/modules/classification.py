# track4health/modules/classification.py

import calendar
import re
from datetime import date
from typing import Iterable, List, Literal, Optional, Union

from ..models.health_models import AttendeeDraft, NutritionStatus, ScreenedChildDraft

AgeUnit = Literal["years", "months"]

# Canonical MUAC cut points (cm), applied by every workflow.
SAM_MAX_MUAC_CM = 11.0
MAM_MAX_MUAC_CM = 12.5

# Plausible range of a MUAC tape reading.
MUAC_MIN_CM = 5.0
MUAC_MAX_CM = 30.0

SCREENING_MIN_AGE_MONTHS = 6
SCREENING_MAX_AGE_MONTHS = 59

_DOB_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_dob(dob: str) -> date:
    """Parses a strict YYYY-MM-DD date of birth. Raises ValueError otherwise."""
    if not isinstance(dob, str) or not _DOB_PATTERN.match(dob):
        raise ValueError(f"Date of birth must be in YYYY-MM-DD format, got '{dob}'.")
    return date.fromisoformat(dob)


def age_from_dob(dob: Union[str, date], unit: AgeUnit = "years", today: Optional[date] = None) -> int:
    """
    Whole years or whole months elapsed since `dob`.

    Uses calendar month/day comparison, so a birthday (or month-day) that has
    not been reached yet is not counted as completed.
    """
    birth = dob if isinstance(dob, date) else parse_dob(dob)
    today = today or date.today()

    if unit == "years":
        age = today.year - birth.year
        if (today.month, today.day) < (birth.month, birth.day):
            age -= 1
    elif unit == "months":
        age = (today.year - birth.year) * 12 + today.month - birth.month
        if today.day < birth.day:
            age -= 1
    else:
        raise ValueError(f"Unknown age unit: {unit}")

    return max(age, 0)


def dob_from_age(age: int, unit: AgeUnit = "years", today: Optional[date] = None) -> str:
    """
    Plausible ISO date of birth for someone `age` years or months old today.

    Days past the end of the target month are clamped (e.g. 31 March minus
    one month gives 28/29 February).
    """
    if age < 0:
        raise ValueError("Age cannot be negative.")
    today = today or date.today()

    if unit == "years":
        months_back = age * 12
    elif unit == "months":
        months_back = age
    else:
        raise ValueError(f"Unknown age unit: {unit}")

    year, month_index = divmod(today.year * 12 + (today.month - 1) - months_back, 12)
    month = month_index + 1
    day = min(today.day, calendar.monthrange(year, month)[1])
    return date(year, month, day).isoformat()


def classify_muac(muac: float) -> NutritionStatus:
    """Maps a MUAC reading in cm to SAM / MAM / Normal."""
    if muac <= SAM_MAX_MUAC_CM:
        return "SAM"
    if muac <= MAM_MAX_MUAC_CM:
        return "MAM"
    return "Normal"


def to_title_case(name: Optional[str]) -> str:
    """
    Normalises a free-text name: trims, collapses whitespace, and capitalises
    the first letter of each token while lowercasing the rest.
    """
    if not name:
        return ""
    return " ".join(token[:1].upper() + token[1:].lower() for token in name.split())


def is_duplicate(name: str, father_name: str, entries: Iterable) -> bool:
    """
    True when an entry with the same name and father/guardian name already
    exists among `entries`. Comparison is case-insensitive through the
    title-cased form; `entries` only need `name` and `guardian_name`.
    """
    candidate = (to_title_case(name), to_title_case(father_name))
    return any(
        (to_title_case(entry.name), to_title_case(entry.guardian_name)) == candidate
        for entry in entries
    )


# ===== Form validation =====

def _dob_errors(dob: Optional[str], today: date) -> List[str]:
    if not dob:
        return []
    try:
        birth = parse_dob(dob)
    except ValueError:
        return ["Date of birth must be in YYYY-MM-DD format"]
    if birth > today:
        return ["Date of birth cannot be in the future"]
    return []


def validate_attendee(draft: AttendeeDraft, today: Optional[date] = None) -> List[str]:
    """Returns user-facing error messages; an empty list means the attendee can be staged."""
    today = today or date.today()
    errors = []
    if not draft.name.strip() or not draft.father_husband_name.strip():
        errors.append("Name and Father/Husband Name are required")
    if draft.age <= 0 and not draft.dob:
        errors.append("Either age or date of birth is required")
    errors.extend(_dob_errors(draft.dob, today))
    if not draft.belongs_to_same_uc and not (draft.address or "").strip():
        errors.append("Address is required when the attendee is from another UC")
    return errors


def validate_child(draft: ScreenedChildDraft, today: Optional[date] = None) -> List[str]:
    """Returns user-facing error messages; an empty list means the child can be staged."""
    today = today or date.today()
    errors = []
    if not draft.name.strip() or not draft.father_name.strip():
        errors.append("Name and Father Name are required")

    dob_errors = _dob_errors(draft.dob, today)
    errors.extend(dob_errors)

    age_months = draft.age
    if age_months <= 0 and draft.dob and not dob_errors:
        age_months = age_from_dob(draft.dob, "months", today)
    if not SCREENING_MIN_AGE_MONTHS <= age_months <= SCREENING_MAX_AGE_MONTHS:
        errors.append(f"Age must be between {SCREENING_MIN_AGE_MONTHS} and {SCREENING_MAX_AGE_MONTHS} months")

    if not MUAC_MIN_CM <= draft.muac <= MUAC_MAX_CM:
        errors.append(f"MUAC must be between {MUAC_MIN_CM:g} and {MUAC_MAX_CM:g} cm")
    if not draft.belongs_to_same_uc and not (draft.address or "").strip():
        errors.append("Address is required when the child is from another UC")
    return errors
