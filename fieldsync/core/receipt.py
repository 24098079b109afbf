"""Receipt primitives used by every fieldsync module.

Functions:
    payload_hash: sha256 hex digest of a JSON-serializable payload
    utc_now: ISO-8601 UTC timestamp ending in 'Z'
    emit_receipt: Emit a structured receipt on the receipts logger
"""
import hashlib
import json
import logging
from datetime import datetime, timezone

RECEIPT_LOGGER = "fieldsync.receipts"

logger = logging.getLogger(RECEIPT_LOGGER)


def utc_now() -> str:
    """Current UTC time in fixed-width ISO-8601 (microseconds) with a 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


def payload_hash(data: bytes | str | dict | list) -> str:
    """Compute sha256 hex digest of data.

    Dicts and lists are hashed over their canonical JSON form
    (sorted keys, compact separators). Pure function with no side effects.

    Args:
        data: Bytes, string, dict or list to hash

    Returns:
        64 hex chars
    """
    if isinstance(data, (dict, list)):
        data = json.dumps(data, sort_keys=True, separators=(",", ":"))
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def emit_receipt(receipt_type: str, data: dict, tenant_id: str = "default") -> dict:
    """Emit a receipt with standard required fields.

    Logs one JSON line on the fieldsync.receipts logger.

    Args:
        receipt_type: Type of receipt (offline_enqueue, sync_pass, ...)
        data: Receipt payload data
        tenant_id: Tenant identifier, overridden by data["tenant_id"]

    Returns:
        Complete receipt dict with receipt_type, ts, tenant_id, payload_hash
    """
    tenant_id = data.get("tenant_id", tenant_id)

    receipt = {
        "receipt_type": receipt_type,
        "ts": utc_now(),
        "tenant_id": tenant_id,
        "payload_hash": payload_hash(json.dumps(data, sort_keys=True, default=str)),
        **data,
    }

    logger.info(json.dumps(receipt, sort_keys=True, default=str))

    return receipt
