"""
Analytics side channel.

track_event() is fire-and-forget: it never raises into the request that
called it. Events carry no PII; known personal fields are masked.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any

from basecore.redis import publish_to_stream
from basecore.settings import get_settings

logger = logging.getLogger("estimate_core.analytics")

PII_FIELDS = frozenset({"email", "name", "phone", "address"})


def scrub(properties: dict[str, Any] | None) -> dict[str, Any]:
    return {
        key: ("***" if key in PII_FIELDS and value else value)
        for key, value in (properties or {}).items()
    }


def track_event(event: str, properties: dict[str, Any] | None = None) -> None:
    """Record an analytics event. Failures are logged, never raised."""
    try:
        record = {
            "event": event,
            "properties": scrub(properties),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        logger.info(f"Analytics event: {event}", extra={"analytics": record})

        stream = get_settings().ANALYTICS_STREAM
        if stream:
            publish_to_stream(
                stream,
                {
                    "event": event,
                    "properties": json.dumps(record["properties"], default=str),
                    "timestamp": record["timestamp"],
                },
            )
    except Exception as e:
        logger.warning(f"Analytics event dropped: {e}", extra={"event": event})
