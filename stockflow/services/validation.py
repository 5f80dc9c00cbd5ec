from stockflow.services.errors import InvalidInputError

# Largest value an INTEGER column holds on every supported backend
MAX_INT = 2**31 - 1


def add_error(errors: list, *, field: str, code: str, message: str, value=None):
    errors.append({
        "field": field,
        "code": code,
        "message": message,
        "value": "" if value is None else str(value),
    })


def is_int(value) -> bool:
    # bool is an int subclass; JSON true/false must not pass as a quantity
    return isinstance(value, int) and not isinstance(value, bool)


def check_int(errors: list, payload: dict, field: str, *, minimum: int, required: bool = False):
    """Validate an integer field in [minimum, MAX_INT] and return its raw value."""
    value = payload.get(field)
    if value is None:
        if required:
            add_error(errors, field=field, code="REQUIRED", message=f"{field} is required")
    elif not is_int(value) or not minimum <= value <= MAX_INT:
        add_error(errors, field=field, code="BAD_INT",
                  message=f"{field} must be an integer between {minimum} and {MAX_INT}", value=value)
    return value


def check_body(payload):
    if not isinstance(payload, dict):
        raise InvalidInputError("Request body must be a JSON object", code="BAD_BODY")


def raise_if_errors(errors: list):
    """Raise one InvalidInputError listing every collected violation."""
    if errors:
        fields = sorted({e["field"] for e in errors})
        raise InvalidInputError(
            f"Invalid fields: {', '.join(fields)}",
            code="VALIDATION_FAILED",
            details={"errors": errors},
        )
