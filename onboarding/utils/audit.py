import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_logger = logging.getLogger("audit")


def identity_hash(identity: Optional[str]) -> Optional[str]:
    if not identity:
        return None
    h = hashlib.sha256(str(identity).lower().encode()).hexdigest()
    return h[:12]


def audit(event: str, *, identity: Optional[Any] = None, request_id: Optional[str] = None, **fields: Any) -> None:
    """Emit an admission/registration event as a single JSON line.

    The identity (email or phone) is hashed, never logged in clear.
    """
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": event,
    }
    if identity:
        payload["identity_hash"] = identity_hash(str(identity))
    if request_id:
        payload["request_id"] = request_id
    if fields:
        payload.update(fields)
    try:
        _logger.info(json.dumps(payload, ensure_ascii=False, default=str))
    except (TypeError, ValueError):
        _logger.info(f"AUDIT {event} identity_hash={payload.get('identity_hash')} fields={fields}")
