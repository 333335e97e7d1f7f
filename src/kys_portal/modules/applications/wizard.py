"""
KYS Registration Wizard

Definition of the four-step registration form and its required fields.
"""

from dataclasses import dataclass

from kys_portal.modules.applications.models import SchoolApplication


@dataclass(frozen=True)
class WizardStep:
    number: int
    name: str
    required_fields: tuple[str, ...]
    optional_fields: tuple[str, ...] = ()


WIZARD_STEPS: tuple[WizardStep, ...] = (
    WizardStep(
        number=1,
        name="Basic Information",
        required_fields=("school_name", "established_year", "country", "state", "location"),
    ),
    WizardStep(
        number=2,
        name="Contact & Leadership",
        required_fields=("principal_name", "email", "phone", "student_count", "teacher_count"),
    ),
    WizardStep(
        number=3,
        name="Academic Information",
        required_fields=("curriculum",),
        optional_fields=("facilities",),
    ),
    WizardStep(
        number=4,
        name="Document Upload",
        required_fields=("documents",),
    ),
)

FIRST_STEP = WIZARD_STEPS[0].number
LAST_STEP = WIZARD_STEPS[-1].number

SUPPORTED_COUNTRIES: tuple[str, ...] = (
    "Nigeria",
    "Egypt",
    "Saudi Arabia",
    "Pakistan",
)

FACILITY_OPTIONS: tuple[str, ...] = (
    "Library",
    "Computer Lab",
    "Prayer Hall",
    "Playground",
    "Cafeteria",
    "Dormitory",
    "Mosque",
    "Sports Field",
)

DOCUMENT_TYPES: tuple[str, ...] = (
    "School Registration Certificate",
    "Principal's CV and Certificates",
    "Tax Clearance Certificate",
    "Building/Facility Photos",
    "Curriculum Documentation",
)


def get_step(number: int) -> WizardStep:
    """Return the wizard step with the given number."""
    for step in WIZARD_STEPS:
        if step.number == number:
            return step
    raise ValueError(f"Unknown wizard step: {number}")


def canonical_choice(value: str, options: tuple[str, ...], label: str) -> str:
    """Match value case-insensitively against options and return the canonical spelling."""
    normalized = value.strip().casefold().replace("-", " ")
    for option in options:
        if option.casefold() == normalized:
            return option
    raise ValueError(f"Unsupported {label} '{value}'. Supported: {', '.join(options)}")


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, list | tuple | set | dict):
        return len(value) == 0
    return False


def missing_fields(application: SchoolApplication, step_number: int) -> list[str]:
    """Return the required fields of a step that are still empty. Zero counts as filled."""
    step = get_step(step_number)
    return [field for field in step.required_fields if _is_empty(getattr(application, field))]


def missing_fields_up_to(application: SchoolApplication, step_number: int) -> dict[int, list[str]]:
    """Missing required fields for every step up to and including step_number."""
    result: dict[int, list[str]] = {}
    for step in WIZARD_STEPS:
        if step.number > step_number:
            break
        missing = missing_fields(application, step.number)
        if missing:
            result[step.number] = missing
    return result
