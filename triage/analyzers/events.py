"""Latest-event lookup used to disambiguate waiting/not-ready states."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from triage.core.context import AnalyzerContext
from triage.core.errors import RunCancelled

logger = logging.getLogger(__name__)


def fetch_latest_event(ctx: AnalyzerContext, namespace: str, object_name: str) -> Optional[Dict[str, Any]]:
    """
    Return the most recent event recorded for an object, or None.

    A failing event store and an empty one both mean "no corroborating evidence"; callers keep scanning.
    Cancellation still propagates.
    """
    try:
        events = ctx.client.get_events(
            namespace=namespace,
            resource_name=object_name,
            limit=1,
            request_timeout=ctx.run.request_timeout(),
        )
    except RunCancelled:
        raise
    except Exception as e:
        logger.debug("event lookup failed for %s/%s: %s", namespace, object_name, e)
        return None
    if not events:
        return None
    return events[0]
