"""Domain interfaces for downstream notification."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from .events import Event


class EventEmitter(ABC):
    """Sink for the domain events of one committed operation."""

    @abstractmethod
    def emit(self, events: Sequence[Event]) -> None:
        """
        Hand over the events produced by a handled operation.

        Called only after the enclosing transaction has committed.

        Args:
            events: Events in the order the handler produced them
        """
        raise NotImplementedError
