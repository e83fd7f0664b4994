from typing import Iterable, Mapping

from . import validation


class FormState:
    """Field values plus per-field error messages for one form.

    Editing a field forgives its error immediately; errors only come back
    through an explicit validation pass or ``set_errors``.
    """

    def __init__(self, initial: Mapping[str, str]):
        self._initial = dict(initial)
        self.values: dict[str, str] = dict(initial)
        self.errors: dict[str, str] = {}

    def set_field(self, name: str, value: str):
        self.values[name] = value
        if name in self.errors:
            del self.errors[name]

    def set_fields(self, values: Mapping[str, str]):
        for name, value in values.items():
            self.set_field(name, value)

    def reset_form(self):
        self.values = dict(self._initial)
        self.errors = {}

    def set_errors(self, errors: Mapping[str, str]):
        self.errors = dict(errors)

    def set_field_error(self, name: str, message: str):
        self.errors[name] = message

    def error(self, name: str) -> str:
        return self.errors.get(name) or ""

    @property
    def is_valid(self) -> bool:
        return not any(self.errors.values())

    def validate(self, schema: Mapping[str, validation.Pipeline]) -> dict[str, str]:
        errors = validation.validate_form(self.values, schema)
        self.set_errors(errors)
        return errors

    def hints(self, fields: Iterable[str]) -> dict[str, str]:
        hints = {}
        for name in fields:
            if self.error(name):
                continue
            hint = validation.live_hint(name, self.values.get(name))
            if hint:
                hints[name] = hint
        return hints
