"""
Registry lifecycle events.

The registry does not own a bus; hosts inject anything with `publish_nowait`.
"""

from modreg.core.events.models import EventSeverity, RegistryEvent, SourceSubsystem
from modreg.core.events.publisher import EventPublisher

__all__ = ["EventPublisher", "EventSeverity", "RegistryEvent", "SourceSubsystem"]
