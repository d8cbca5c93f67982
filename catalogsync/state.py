"""Observable sync state published to the UI layer."""

import logging
from typing import Any, Callable, Generic, TypeVar

from .models import Entity

logger = logging.getLogger(__name__)

T = TypeVar("T")

Observer = Callable[[Any], None]


class Signal(Generic[T]):
    """A single observable value.

    Every ``set`` notifies all observers, even when the value is unchanged.
    Once closed, sets are dropped and observers are released.
    """

    def __init__(self, name: str, initial: T):
        self.name = name
        self._value = initial
        self._observers: list[Callable[[T], None]] = []
        self._closed = False

    @property
    def value(self) -> T:
        return self._value

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, observer: Callable[[T], None]) -> Callable[[], None]:
        """Register an observer and deliver the current value to it.

        Returns:
            A callable that removes the observer.
        """
        self._observers.append(observer)
        observer(self._value)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def set(self, value: T) -> None:
        if self._closed:
            logger.debug(f"Dropped publish on closed signal {self.name}")
            return

        self._value = value
        for observer in list(self._observers):
            try:
                observer(value)
            except Exception as e:
                logger.error(f"Observer of {self.name} failed: {e}", exc_info=True)

    def close(self) -> None:
        self._closed = True
        self._observers.clear()


class StateChannel:
    """The three independent sync signals: data, loading, error."""

    def __init__(self):
        self.data: Signal[tuple[Entity, ...] | None] = Signal("data", None)
        self.loading: Signal[bool] = Signal("loading", False)
        self.error: Signal[bool] = Signal("error", False)

    @property
    def closed(self) -> bool:
        return self.data.closed

    def close(self) -> None:
        for signal in (self.data, self.loading, self.error):
            signal.close()

    def snapshot(self) -> dict[str, Any]:
        """Current values as a plain dict."""
        data = self.data.value
        return {
            "data": None if data is None else [e.to_dict() for e in data],
            "loading": self.loading.value,
            "error": self.error.value,
        }
