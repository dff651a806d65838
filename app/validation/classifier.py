# app/validation/classifier.py
#
# Two-tier classification of request validation failures (OWASP):
#   syntactic -> 400 Bad Request (missing, wrong type, malformed format)
#   semantic  -> 422 Unprocessable Entity (well-typed but breaks a business rule)
#
# Any syntactic failure makes the whole request a 400.

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional


class ValidationKind(str, Enum):
    SYNTACTIC = "syntactic"
    SEMANTIC = "semantic"


STATUS_BY_KIND = {
    ValidationKind.SYNTACTIC: 400,
    ValidationKind.SEMANTIC: 422,
}


@dataclass(frozen=True)
class ValidationOutcome:
    field: str
    message: str
    kind: Optional[ValidationKind] = None


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass(frozen=True)
class ValidationResult:
    status_code: int
    errors: List[FieldError]


# Fallback for outcomes whose producer did not tag a kind.
# Semantic phrasings win: "must be an array" would otherwise read as a type error.
SEMANTIC_PATTERNS = [
    re.compile(r"contains invalid characters", re.IGNORECASE),
    re.compile(r"\bat most\b", re.IGNORECASE),
    re.compile(r"must be one of", re.IGNORECASE),
    re.compile(r"\bexceeds\b", re.IGNORECASE),
    re.compile(r"must be an array", re.IGNORECASE),
    re.compile(r"at least one", re.IGNORECASE),
]

SYNTACTIC_PATTERNS = [
    re.compile(r"is required", re.IGNORECASE),
    re.compile(r"must be an? (?!.*\bbetween\b)\S+", re.IGNORECASE),
]


def infer_kind(message: str) -> ValidationKind:
    for pattern in SEMANTIC_PATTERNS:
        if pattern.search(message):
            return ValidationKind.SEMANTIC

    for pattern in SYNTACTIC_PATTERNS:
        if pattern.search(message):
            return ValidationKind.SYNTACTIC

    return ValidationKind.SEMANTIC


def resolve_kind(outcome: ValidationOutcome) -> ValidationKind:
    if outcome.kind is not None:
        return outcome.kind
    return infer_kind(outcome.message)


def classify_validation_errors(outcomes: Iterable[ValidationOutcome]) -> ValidationResult:
    outcomes = list(outcomes)
    if not outcomes:
        raise ValueError("Cannot classify an empty list of validation outcomes")

    kinds = {resolve_kind(outcome) for outcome in outcomes}

    if ValidationKind.SYNTACTIC in kinds:
        status_code = STATUS_BY_KIND[ValidationKind.SYNTACTIC]
    else:
        status_code = STATUS_BY_KIND[ValidationKind.SEMANTIC]

    return ValidationResult(
        status_code=status_code,
        errors=[FieldError(field=outcome.field, message=outcome.message) for outcome in outcomes],
    )


# =========================================================
# PYDANTIC ERRORS
# =========================================================

INVALID_CHARACTERS_MESSAGE = (
    "{field} contains invalid characters. "
    "Only letters, numbers, spaces, and basic punctuation are allowed"
)

ITEMS_MESSAGE = "{field} must be an array with at least one item"

NUMBER_MESSAGE = "{field} must be a number"
INTEGER_MESSAGE = "{field} must be an integer"
DATE_MESSAGE = "{field} must be a valid ISO 8601 date (YYYY-MM-DD)"
OBJECT_MESSAGE = "{field} must be an object"

# Missing, wrong JSON type or malformed text
SYNTACTIC_ERRORS = {
    "missing": "{field} is required",
    "json_invalid": "{field} must be a valid JSON document",
    "model_type": OBJECT_MESSAGE,
    "model_attributes_type": OBJECT_MESSAGE,
    "dict_type": OBJECT_MESSAGE,
    "string_type": "{field} must be a string",
    "int_type": INTEGER_MESSAGE,
    "int_parsing": INTEGER_MESSAGE,
    "int_from_float": INTEGER_MESSAGE,
    "float_type": NUMBER_MESSAGE,
    "float_parsing": NUMBER_MESSAGE,
    "decimal_type": NUMBER_MESSAGE,
    "decimal_parsing": NUMBER_MESSAGE,
    "date_type": DATE_MESSAGE,
    "date_parsing": DATE_MESSAGE,
    "date_from_datetime_parsing": DATE_MESSAGE,
    "date_from_datetime_inexact": DATE_MESSAGE,
}

# Well-formed but outside what the business accepts
SEMANTIC_ERRORS = {
    "greater_than": "{field} must be greater than {gt}",
    "greater_than_equal": "{field} must be at least {ge}",
    "less_than": "{field} must be less than {lt}",
    "less_than_equal": "{field} must be at most {le}",
    "string_too_short": "{field} must have at least {min_length} character(s)",
    "string_too_long": "{field} must have at most {max_length} characters",
    "string_pattern_mismatch": INVALID_CHARACTERS_MESSAGE,
    "list_type": ITEMS_MESSAGE,
    "too_short": ITEMS_MESSAGE,
    "enum": "{field} must be one of: {expected}",
    "decimal_max_places": "{field} can have at most {decimal_places} decimal places",
    "decimal_max_digits": "{field} can have at most {max_digits} digits",
    "finite_number": "{field} must not be NaN or infinite",
    "item_discount_exceeds": "{field} exceeds the item gross value",
    "date_range": "{field} must not be earlier than dateFrom",
}


# Request sections FastAPI prefixes to error locations
LOCATION_SECTIONS = {"body", "query", "path", "header", "cookie"}


def _format_location(loc) -> str:
    field = ""
    for part in loc:
        if part in LOCATION_SECTIONS and not field:
            continue
        if isinstance(part, int):
            field += f"[{part}]"
        else:
            field += f".{part}" if field else str(part)
    return field or "body"


def _render(template: str, field: str, ctx: dict) -> str:
    return template.format(field=field, **{key: value for key, value in ctx.items() if key != "field"})


def outcomes_from_pydantic(errors) -> List[ValidationOutcome]:
    """
    Map pydantic error dicts to outcomes.

    Known error types carry an explicit kind and a fixed message. Anything
    else (``value_error`` included) is left untagged and classified by its
    message.
    """
    outcomes = []

    for error in errors:
        error_type = error.get("type", "")
        ctx = error.get("ctx") or {}

        if error_type == "json_invalid":
            # The location points into the raw document
            field = "body"
        else:
            field = _format_location(error.get("loc", ()))

        if error_type in SYNTACTIC_ERRORS:
            kind = ValidationKind.SYNTACTIC
            template = SYNTACTIC_ERRORS[error_type]
        elif error_type in SEMANTIC_ERRORS:
            kind = ValidationKind.SEMANTIC
            template = SEMANTIC_ERRORS[error_type]
        else:
            kind = None
            template = None

        if template is not None:
            try:
                message = _render(template, field, ctx)
            except (KeyError, IndexError):
                message = f"{field}: {error.get('msg', 'Invalid value')}"
        else:
            message = error.get("msg", "Invalid value").removeprefix("Value error, ")
            if not message.startswith(field):
                message = f"{field} {message}"

        outcomes.append(ValidationOutcome(field=field, message=message, kind=kind))

    return outcomes
