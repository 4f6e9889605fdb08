"""
Event bus - publish/subscribe with module attribution.

Observers registered while a module is current (for example from its
bootstrap callback) run with that module pushed back onto the context
stack whenever the event fires.

Usage:
    events.on("layout.render.before", render_head)
    results = events.fire("layout.render.before", {"layout": layout})
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from .registry.context import ModuleContextStack
from .registry.registry import import_callable


logger = logging.getLogger("bucky.events")


@dataclass
class Observer:
    callback: Union[Callable[[Dict[str, Any]], Any], str]
    args: Dict[str, Any] = field(default_factory=dict)
    module_name: Optional[str] = None


class EventBus:
    """
    Stores events and observers.

    Callbacks receive a single dict of merged arguments: event defaults,
    then observer defaults, then the arguments passed to ``fire``.
    """

    def __init__(self, context: Optional[ModuleContextStack] = None):
        self.context = context or ModuleContextStack()
        self._observers: Dict[str, List[Observer]] = {}
        self._defaults: Dict[str, Dict[str, Any]] = {}

    def event(self, name: str, args: Optional[Dict[str, Any]] = None) -> "EventBus":
        """Declare an event with default arguments."""
        self._defaults[name] = dict(args or {})
        self._observers.setdefault(name, [])
        return self

    def on(
        self,
        name: str,
        callback: Union[Callable[[Dict[str, Any]], Any], str],
        args: Optional[Dict[str, Any]] = None,
    ) -> Observer:
        """
        Subscribe ``callback`` to ``name``.

        String callbacks are import paths resolved on first fire.
        """
        observer = Observer(
            callback=callback,
            args=dict(args or {}),
            module_name=self.context.current_name(),
        )
        self._observers.setdefault(name, []).append(observer)
        logger.debug("SUBSCRIBE %s: %r (module=%s)", name, callback, observer.module_name)
        return observer

    def off(self, name: str, callback: Any) -> bool:
        observers = self._observers.get(name, [])
        for i, observer in enumerate(observers):
            if observer.callback is callback or observer.callback == callback:
                observers.pop(i)
                return True
        return False

    def fire(self, name: str, args: Optional[Dict[str, Any]] = None) -> List[Any]:
        """
        Dispatch observers of ``name``.

        Returns:
            Results collected from observers, in subscription order
        """
        observers = self._observers.get(name, [])
        logger.debug("FIRE %s%s", name, "" if observers else " (NO SUBSCRIBERS)")

        results: List[Any] = []
        for observer in list(observers):
            call_args = {**self._defaults.get(name, {}), **observer.args, **(args or {})}

            callback = observer.callback
            if isinstance(callback, str):
                try:
                    callback = import_callable(callback)
                except (ImportError, AttributeError):
                    callback = None
                else:
                    observer.callback = callback

            if not callable(callback):
                logger.warning("Invalid callback for %s: %r", name, observer.callback)
                continue

            if observer.module_name:
                with self.context.frame(observer.module_name):
                    results.append(callback(call_args))
            else:
                results.append(callback(call_args))

        return results

    def observers(self, name: str) -> List[Observer]:
        return list(self._observers.get(name, []))
