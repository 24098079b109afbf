"""Field record schemas and validation.

Records are a tagged union keyed by "type". Each type has required
and optional fields with their expected Python types; validation runs
once, before a record reaches the network or the durable queue.

Constants:
    RECORD_SCHEMAS: {type: {"required": {...}, "optional": {...}}}
    COMMON_OPTIONAL_FIELDS: Optional fields shared by every type
    RECORD_TYPES: Known record type tags

Functions:
    validate_record: Validate a record against the schema for its type
"""
import json

from .core.errors import RecordValidationError

_NUMBER = (int, float)
_OPT_STR = (str, type(None))
_OPT_NUMBER = (int, float, type(None))

# Shared by every record type
COMMON_OPTIONAL_FIELDS = {
    "id": str,
    "notes": _OPT_STR,
    "priority": str,
    "status": str,
    "photos": list,
    "gpsLocation": (dict, type(None)),
    "gpsCoordinates": (dict, type(None)),
    "userId": str,
    "userEmail": str,
    "timestamp": str,
    "createdAt": str,
    "activityType": str,
}

RECORD_SCHEMAS = {
    "punch_in": {
        "required": {
            "technicianName": str,
            "location": str,
        },
        "optional": {
            "punchInTime": _OPT_STR,
            "punchOutTime": _OPT_STR,
        },
    },
    "corrective_maintenance": {
        "required": {
            "ttNumber": str,
            "presentLocation": str,
            "reasonForDamage": str,
        },
        "optional": {
            "gpName": str,
            "distanceFromPOP": _OPT_NUMBER,
            "restorationPossibility": (str, bool),
            "otdrTestResults": str,
            "materialConsumption": str,
            "completionNotes": _OPT_STR,
            "equipmentId": _OPT_STR,
        },
    },
    "preventive_maintenance": {
        "required": {
            "location": str,
            "maintenanceType": str,
        },
        "optional": {
            "equipmentId": str,
            "maintenanceDescription": str,
            "completionNotes": _OPT_STR,
        },
    },
    "change_request": {
        "required": {
            "requestedBy": str,
            "location": str,
            "changeDescription": str,
        },
        "optional": {
            "approvalNotes": _OPT_STR,
        },
    },
    "gp_live_check": {
        "required": {
            "location": str,
            "gpName": str,
            "checkType": str,
        },
        "optional": {
            "checkResult": str,
            "issuesFound": str,
            "resolutionNotes": _OPT_STR,
        },
    },
    "patroller_task": {
        "required": {
            "location": str,
            "taskDescription": str,
        },
        "optional": {
            "assignedTo": str,
            "dueDate": str,
            "completionNotes": _OPT_STR,
        },
    },
}

RECORD_TYPES = tuple(RECORD_SCHEMAS)


def _type_names(expected) -> str:
    if isinstance(expected, tuple):
        return " or ".join(t.__name__ for t in expected)
    return expected.__name__


def _check_type(record_type: str, name: str, value, expected) -> None:
    # bool is an int subclass; numbers must not accept it
    if isinstance(value, bool) and expected in (_NUMBER, _OPT_NUMBER):
        raise RecordValidationError(
            f"{record_type}.{name} must be {_type_names(expected)}, got bool",
            record_type,
        )
    if not isinstance(value, expected):
        raise RecordValidationError(
            f"{record_type}.{name} must be {_type_names(expected)}, "
            f"got {type(value).__name__}",
            record_type,
        )


def _validate_location(record_type: str, name: str, location: dict | None) -> None:
    if location is None:
        return
    for axis in ("latitude", "longitude"):
        value = location.get(axis)
        if isinstance(value, bool) or not isinstance(value, _NUMBER):
            raise RecordValidationError(
                f"{record_type}.{name}.{axis} must be a number", record_type
            )
    if not -90 <= location["latitude"] <= 90:
        raise RecordValidationError(
            f"{record_type}.{name}.latitude out of range", record_type
        )
    if not -180 <= location["longitude"] <= 180:
        raise RecordValidationError(
            f"{record_type}.{name}.longitude out of range", record_type
        )
    accuracy = location.get("accuracy")
    if accuracy is not None and (isinstance(accuracy, bool) or not isinstance(accuracy, _NUMBER)):
        raise RecordValidationError(
            f"{record_type}.{name}.accuracy must be a number", record_type
        )


def validate_record(record: dict) -> dict:
    """Validate record against the schema for its type.

    Unknown keys are kept so newer forms keep working against an
    older client.

    Args:
        record: Record dict with a "type" tag

    Returns:
        Shallow copy of the record

    Raises:
        RecordValidationError: Unknown type, missing or mistyped field,
            or a record that is not JSON-serializable
    """
    if not isinstance(record, dict):
        raise RecordValidationError("Record must be a dict")

    record_type = record.get("type")
    if not record_type:
        raise RecordValidationError("Record type required")
    if record_type not in RECORD_SCHEMAS:
        raise RecordValidationError(f"Invalid record type: {record_type}", record_type)

    schema = RECORD_SCHEMAS[record_type]

    for name, expected in schema["required"].items():
        value = record.get(name)
        if value is None:
            raise RecordValidationError(f"Missing required field: {record_type}.{name}", record_type)
        _check_type(record_type, name, value, expected)
        if expected is str and not value.strip():
            raise RecordValidationError(f"Empty required field: {record_type}.{name}", record_type)

    optional = {**COMMON_OPTIONAL_FIELDS, **schema["optional"]}
    for name, expected in optional.items():
        if name in record:
            _check_type(record_type, name, record[name], expected)

    for photo in record.get("photos") or []:
        if not isinstance(photo, str):
            raise RecordValidationError(f"{record_type}.photos must contain base64 strings", record_type)

    _validate_location(record_type, "gpsLocation", record.get("gpsLocation"))
    _validate_location(record_type, "gpsCoordinates", record.get("gpsCoordinates"))

    try:
        json.dumps(record)
    except (TypeError, ValueError) as e:
        raise RecordValidationError(f"{record_type} is not JSON-serializable: {e}", record_type) from e

    return dict(record)
