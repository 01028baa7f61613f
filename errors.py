"""Domain errors. The API layer turns them into the JSON envelope."""

from pydantic import ValidationError

FIELD_MESSAGES = {
    "email": "Bitte geben Sie eine gültige E-Mail-Adresse ein.",
    "date": "Bitte geben Sie ein gültiges Datum an.",
    "maxAttendees": "Die maximale Teilnehmerzahl muss eine positive Zahl sein.",
    "max_attendees": "Die maximale Teilnehmerzahl muss eine positive Zahl sein.",
}
CUSTOM_ERROR_TYPES = {"missing_fields", "privacy", "time_format", "category", "object_id"}


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailed(AppError):
    status_code = 400


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    status_code = 409


class Unauthorized(AppError):
    status_code = 401

    def __init__(self, message: str = "Nicht autorisiert."):
        super().__init__(message)


def validation_message(errors) -> str:
    """A single user-facing message for a list of pydantic error dicts."""
    if isinstance(errors, ValidationError):
        errors = errors.errors()
    if not errors:
        return "Ungültige Eingabe."
    err = errors[0]
    if err.get("type") in CUSTOM_ERROR_TYPES:
        return err["msg"]
    loc = [str(p) for p in err.get("loc", ()) if p != "body"]
    field = loc[-1] if loc else ""
    if field in FIELD_MESSAGES:
        return FIELD_MESSAGES[field]
    if err.get("type") == "json_invalid" or not field:
        return "Ungültige Anfrage."
    return f"Ungültiger Wert für '{field}'."
