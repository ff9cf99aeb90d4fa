"""Managed node life cycle and an in-process message bus."""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections import defaultdict
from typing import Any, Callable

MessageCallback = Callable[[Any], None]


class State(enum.IntEnum):
    """Primary states of a managed node."""

    UNKNOWN = 0
    UNCONFIGURED = 1
    INACTIVE = 2
    ACTIVE = 3
    FINALIZED = 4


class CallbackReturn(enum.Enum):
    """Outcome of a transition callback."""

    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


class Bus:
    """Delivers published messages to every subscriber of a topic."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[MessageCallback]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, callback: MessageCallback) -> MessageCallback:
        """Call ``callback(msg)`` for every message published on ``topic``."""
        with self._lock:
            self._subscribers[topic].append(callback)
        return callback

    def unsubscribe(self, topic: str, callback: MessageCallback) -> None:
        """Stop delivering ``topic`` to ``callback``."""
        with self._lock:
            callbacks = self._subscribers.get(topic, [])
            if callback not in callbacks:
                raise ValueError(f"callback is not subscribed to {topic!r}")
            callbacks.remove(callback)

    def publish(self, topic: str, msg: Any) -> int:
        """Deliver ``msg`` to the subscribers of ``topic``; returns how many."""
        with self._lock:
            callbacks = list(self._subscribers.get(topic, ()))
        for callback in callbacks:
            callback(msg)
        return len(callbacks)


class _LifecyclePublisher:
    """A publisher that drops messages while it is not activated."""

    def __init__(self, bus: Bus, topic: str, logger: logging.Logger) -> None:
        self._bus = bus
        self.topic = topic
        self._logger = logger
        self.active = False

    def on_activate(self) -> None:
        self.active = True

    def on_deactivate(self) -> None:
        self.active = False

    def publish(self, msg: Any) -> bool:
        if not self.active:
            self._logger.warning(
                "Trying to publish on %s while the publisher is not activated", self.topic
            )
            return False
        self._bus.publish(self.topic, msg)
        return True


# transition name -> (states it starts from, hook, state on success, state on failure)
_TRANSITIONS: dict[str, tuple[frozenset[State], str, State, State]] = {
    "configure": (frozenset({State.UNCONFIGURED}), "on_configure", State.INACTIVE, State.UNCONFIGURED),
    "activate": (frozenset({State.INACTIVE}), "on_activate", State.ACTIVE, State.INACTIVE),
    "deactivate": (frozenset({State.ACTIVE}), "on_deactivate", State.INACTIVE, State.ACTIVE),
    "cleanup": (frozenset({State.INACTIVE}), "on_cleanup", State.UNCONFIGURED, State.INACTIVE),
    "shutdown": (
        frozenset({State.UNCONFIGURED, State.INACTIVE, State.ACTIVE}),
        "on_shutdown",
        State.FINALIZED,
        State.FINALIZED,
    ),
}


def _coerce_parameter(name: str, default: Any, value: Any) -> Any:
    if isinstance(default, bool):
        ok = isinstance(value, bool)
    elif isinstance(default, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif isinstance(default, float):
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        if ok:
            value = float(value)
    else:
        ok = isinstance(value, type(default))
    if not ok:
        raise TypeError(
            f"parameter {name!r} expects {type(default).__name__}, "
            f"got {type(value).__name__}"
        )
    return value


class LifecycleNode:
    """A node that moves between unconfigured, inactive, active and finalized.

    A transition is only taken from the states it allows; otherwise the node
    stays where it is and the current state is returned. A callback that
    fails keeps the node in its previous state; one that errors or raises
    finalizes it.
    """

    def __init__(self, name: str, bus: Bus, parameters: dict[str, Any] | None = None) -> None:
        self.name = name
        self.bus = bus
        self.logger = logging.getLogger(f"cuadriga.{name}")
        self._parameters = dict(parameters or {})
        self._declared: dict[str, Any] = {}
        self._state = State.UNCONFIGURED
        self._transition_lock = threading.RLock()

    def declare_parameter(self, name: str, default: Any) -> Any:
        """Declare a parameter; an override given at construction wins."""
        if name in self._declared:
            raise ValueError(f"parameter {name!r} has already been declared")
        value = default
        if name in self._parameters:
            value = _coerce_parameter(name, default, self._parameters[name])
        self._declared[name] = value
        return value

    def state(self) -> State:
        """The current primary state."""
        return self._state

    def _now(self) -> float:
        return time.time()

    def _create_publisher(self, topic: str) -> _LifecyclePublisher:
        return _LifecyclePublisher(self.bus, topic, self.logger)

    def _transition(self, name: str) -> State:
        allowed, hook, on_success, on_failure = _TRANSITIONS[name]
        with self._transition_lock:
            current = self._state
            if current not in allowed:
                self.logger.warning(
                    "Transition %s is not available in state %s", name, current.name
                )
                return current
            try:
                result = getattr(self, hook)(current)
            except Exception:
                self.logger.exception("Transition %s raised", name)
                result = CallbackReturn.ERROR
            if result is CallbackReturn.SUCCESS:
                self._state = on_success
            elif result is CallbackReturn.FAILURE:
                self._state = on_failure
            else:
                self._state = State.FINALIZED
            return self._state

    def configure(self) -> State:
        return self._transition("configure")

    def activate(self) -> State:
        return self._transition("activate")

    def deactivate(self) -> State:
        return self._transition("deactivate")

    def cleanup(self) -> State:
        return self._transition("cleanup")

    def shutdown(self) -> State:
        return self._transition("shutdown")

    def on_configure(self, state: State) -> CallbackReturn:
        return CallbackReturn.SUCCESS

    def on_activate(self, state: State) -> CallbackReturn:
        return CallbackReturn.SUCCESS

    def on_deactivate(self, state: State) -> CallbackReturn:
        return CallbackReturn.SUCCESS

    def on_cleanup(self, state: State) -> CallbackReturn:
        return CallbackReturn.SUCCESS

    def on_shutdown(self, state: State) -> CallbackReturn:
        return CallbackReturn.SUCCESS