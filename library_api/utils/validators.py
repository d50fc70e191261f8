import re
from datetime import date

from library_api.errors import ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Payload:
    """
    Collects field errors for one request body and raises them together.

    ``required`` decides whether a missing key is an error (create) or simply
    skipped (partial update).
    """

    def __init__(self, data: dict | None, required: bool = True):
        self.data = data or {}
        self.required = required
        self.errors: dict[str, list[str]] = {}
        self.clean: dict = {}

    def _error(self, field: str, message: str):
        self.errors.setdefault(field, []).append(message)

    def _missing(self, field: str) -> bool:
        if field in self.data and self.data[field] is not None:
            return False
        if self.required:
            self._error(field, f"The {field} field is required.")
        return True

    def string(self, field: str, max_len: int = 255, min_len: int = 1):
        if self._missing(field):
            return self
        value = self.data[field]
        if not isinstance(value, str):
            self._error(field, f"The {field} field must be a string.")
            return self
        value = value.strip()
        if len(value) < min_len:
            if min_len <= 1:
                self._error(field, f"The {field} field is required.")
            else:
                self._error(field, f"The {field} field must be at least {min_len} characters.")
        elif len(value) > max_len:
            self._error(field, f"The {field} field must not be greater than {max_len} characters.")
        else:
            self.clean[field] = value
        return self

    def email(self, field: str = "email"):
        self.string(field)
        value = self.clean.get(field)
        if value is not None and not EMAIL_RE.match(value):
            self.clean.pop(field)
            self._error(field, f"The {field} field must be a valid email address.")
        elif value is not None:
            self.clean[field] = value.lower()
        return self

    def integer(self, field: str, min_value: int | None = None, max_value: int | None = None):
        if self._missing(field):
            return self
        value = self.data[field]
        if isinstance(value, bool):
            self._error(field, f"The {field} field must be an integer.")
            return self
        try:
            value = int(value)
        except (TypeError, ValueError):
            self._error(field, f"The {field} field must be an integer.")
            return self
        if min_value is not None and value < min_value:
            self._error(field, f"The {field} field must be at least {min_value}.")
        elif max_value is not None and value > max_value:
            self._error(field, f"The {field} field must not be greater than {max_value}.")
        else:
            self.clean[field] = value
        return self

    def publication_year(self, field: str = "publication_year"):
        this_year = date.today().year
        return self.integer(field, min_value=this_year - 100, max_value=this_year)

    def choice(self, field: str, choices):
        if self._missing(field):
            return self
        value = self.data[field]
        if value not in choices:
            self._error(field, f"The selected {field} is invalid.")
        else:
            self.clean[field] = value
        return self

    def reject(self, field: str, message: str):
        if field in self.data:
            self._error(field, message)
        return self

    def add_error(self, field: str, message: str):
        self._error(field, message)
        return self

    def validated(self) -> dict:
        if self.errors:
            raise ValidationError(self.errors)
        return self.clean
