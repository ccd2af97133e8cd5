from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from modreg.core.events.models import EventSeverity, RegistryEvent, SourceSubsystem


class EventPublisher:
    """
    Thin adapter over an optional host event bus.

    The bus only needs `publish_nowait(event)`. Publishing is best-effort: a
    broken bus is logged and never fails the registry operation that emitted
    the event.
    """

    def __init__(self, *, event_bus: Any = None, subsystem: SourceSubsystem, logger: Optional[logging.Logger] = None):
        self.event_bus = event_bus
        self.subsystem = subsystem
        self.logger = logger or logging.getLogger("modreg.events")

    def emit(
        self,
        trace_id: str,
        event_type: str,
        payload: Dict[str, Any],
        *,
        severity: EventSeverity = EventSeverity.INFO,
    ) -> None:
        if self.event_bus is None:
            return
        try:
            self.event_bus.publish_nowait(
                RegistryEvent(
                    event_type=event_type,
                    trace_id=trace_id,
                    source_subsystem=self.subsystem,
                    severity=severity,
                    payload=payload,
                )
            )
        except Exception as e:  # noqa: BLE001
            self.logger.warning("event publish failed (%s): %s", event_type, e)
