"""Infrastructure Services.

Concrete implementations of the domain's collaborator interfaces.

Service Categories:
- Events: structured audit logging and buffered metrics
- Delivery: development/test code delivery
"""

from .code_delivery import LoggingCodeDelivery
from .event_publisher import CompositeEventPublisher, InMemoryEventPublisher, StructlogEventPublisher
from .metrics_publisher import BufferedMetricsPublisher

__all__ = [
    "LoggingCodeDelivery",
    "CompositeEventPublisher",
    "InMemoryEventPublisher",
    "StructlogEventPublisher",
    "BufferedMetricsPublisher",
]
