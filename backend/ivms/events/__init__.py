from .decorators import audited
from .decorators import publish_event
from .event_bus import EventBus
from .event_bus import EventType
from .event_bus import event_bus

__all__ = ["EventBus", "EventType", "event_bus", "audited", "publish_event"]
