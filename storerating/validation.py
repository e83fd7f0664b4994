"""Field validation shared by the web forms and the REST API.

Every field is validated by an ordered pipeline of rules. The pipeline stops
at the first failing rule, so each field reports exactly one message.
"""
import re
from typing import Callable, Mapping, NamedTuple, Sequence

from .roles import Role

NAME_MIN = 20
NAME_MAX = 60
ADDRESS_MAX = 400
PASSWORD_MIN = 8
PASSWORD_MAX = 16
RATING_MIN = 1
RATING_MAX = 5

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
UPPERCASE_RE = re.compile(r"[A-Z]")
SPECIAL_CHAR_RE = re.compile(r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]")


class ValidationResult(NamedTuple):
    valid: bool
    error: str | None = None


class Rule(NamedTuple):
    fails: Callable[[str], bool]
    message: str


class Pipeline(NamedTuple):
    rules: Sequence[Rule]
    trim: bool = True

    def run(self, value) -> ValidationResult:
        text = "" if value is None else value if isinstance(value, str) else str(value)
        if self.trim:
            text = text.strip()
        for rule in self.rules:
            if rule.fails(text):
                return ValidationResult(False, rule.message)
        return ValidationResult(True)


def _blank(value: str) -> bool:
    return not value


NAME = Pipeline((
    Rule(_blank, "Name is required"),
    Rule(lambda v: len(v) < NAME_MIN, f"Name must be at least {NAME_MIN} characters long"),
    Rule(lambda v: len(v) > NAME_MAX, f"Name must not exceed {NAME_MAX} characters"),
))

EMAIL = Pipeline((
    Rule(_blank, "Email is required"),
    Rule(lambda v: EMAIL_RE.match(v) is None, "Email must be in valid format"),
))

ADDRESS = Pipeline((
    Rule(_blank, "Address is required"),
    Rule(lambda v: len(v) > ADDRESS_MAX, f"Address must not exceed {ADDRESS_MAX} characters"),
))

_PASSWORD_STRENGTH = (
    Rule(lambda v: len(v) < PASSWORD_MIN, f"Password must be at least {PASSWORD_MIN} characters long"),
    Rule(lambda v: len(v) > PASSWORD_MAX, f"Password must not exceed {PASSWORD_MAX} characters"),
    Rule(lambda v: UPPERCASE_RE.search(v) is None, "Password must contain at least one uppercase letter"),
    Rule(lambda v: SPECIAL_CHAR_RE.search(v) is None, "Password must contain at least one special character"),
)

# passwords are never trimmed
PASSWORD = Pipeline((Rule(_blank, "Password is required"),) + _PASSWORD_STRENGTH, trim=False)
NEW_PASSWORD = Pipeline((Rule(_blank, "New password is required"),) + _PASSWORD_STRENGTH, trim=False)

ROLE = Pipeline((
    Rule(_blank, "Role is required"),
    Rule(lambda v: Role.parse(v) is None, "Invalid role. Must be SYSTEM_ADMIN, NORMAL_USER, or STORE_OWNER"),
), trim=False)

REQUIRED_EMAIL = Pipeline((Rule(_blank, "Email is required"),))
REQUIRED_PASSWORD = Pipeline((Rule(_blank, "Password is required"),), trim=False)


# Form schemas: field name -> pipeline, in display order.
REGISTER_FORM = {"name": NAME, "email": EMAIL, "address": ADDRESS, "password": PASSWORD}
CREATE_USER_FORM = {**REGISTER_FORM, "role": ROLE}
CREATE_STORE_FORM = {"name": NAME, "email": EMAIL, "address": ADDRESS}
LOGIN_FORM = {"email": REQUIRED_EMAIL, "password": REQUIRED_PASSWORD}


def validate_name(value) -> ValidationResult:
    return NAME.run(value)


def validate_email(value) -> ValidationResult:
    return EMAIL.run(value)


def validate_address(value) -> ValidationResult:
    return ADDRESS.run(value)


def validate_password(value) -> ValidationResult:
    return PASSWORD.run(value)


def validate_role(value) -> ValidationResult:
    return ROLE.run(value)


def validate_rating(value) -> ValidationResult:
    if value is None or value == "":
        return ValidationResult(False, "Rating is required")
    # bool is an int subclass but never a rating
    if isinstance(value, bool) or not isinstance(value, int):
        return ValidationResult(False, "Rating must be an integer")
    if not RATING_MIN <= value <= RATING_MAX:
        return ValidationResult(False, f"Rating must be between {RATING_MIN} and {RATING_MAX}")
    return ValidationResult(True)


def validate_form(values: Mapping[str, str], schema: Mapping[str, Pipeline]) -> dict[str, str]:
    """Run a full validation pass; returns field -> message for every failing field."""
    errors = {}
    for field, pipeline in schema.items():
        result = pipeline.run(values.get(field))
        if not result.valid:
            errors[field] = result.error
    return errors


def validate_password_update(values: Mapping[str, str]) -> dict[str, str]:
    errors = validate_form(values, {"newPassword": NEW_PASSWORD})
    confirm = values.get("confirmPassword") or ""
    if not confirm:
        errors["confirmPassword"] = "Please confirm your new password"
    elif confirm != (values.get("newPassword") or ""):
        errors["confirmPassword"] = "Passwords do not match"
    return errors


def first_error(values: Mapping[str, str], schema: Mapping[str, Pipeline]) -> str | None:
    """First message of a validation pass, in schema order (the API reports one error at a time)."""
    for field, pipeline in schema.items():
        result = pipeline.run(values.get(field))
        if not result.valid:
            return result.error
    return None


def _password_hint(value: str) -> str | None:
    issues = []
    if len(value) < PASSWORD_MIN:
        issues.append(f"at least {PASSWORD_MIN} characters")
    if len(value) > PASSWORD_MAX:
        issues.append(f"max {PASSWORD_MAX} characters")
    if UPPERCASE_RE.search(value) is None:
        issues.append("one uppercase letter")
    if SPECIAL_CHAR_RE.search(value) is None:
        issues.append("one special character")
    return f"Need: {', '.join(issues)}" if issues else None


def live_hint(field: str, value: str | None) -> str | None:
    """Advisory guidance shown while typing; never blocks submission."""
    if not value:
        return None
    if field == "name":
        length = len(value.strip())
        if 0 < length < NAME_MIN:
            return f"{NAME_MIN - length} more characters needed"
        if length > NAME_MAX:
            return f"{length - NAME_MAX} characters over limit"
        return None
    if field == "address":
        length = len(value.strip())
        if length > ADDRESS_MAX:
            return f"{length - ADDRESS_MAX} characters over limit"
        return None
    if field in ("password", "newPassword"):
        return _password_hint(value)
    return None
