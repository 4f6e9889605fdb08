"""
Current-module context stack.

The top of the stack answers "which module is running right now" for
bootstrap callbacks, event observers and anything they call.
"""

from contextlib import contextmanager
from typing import Iterator, List, Optional

from .errors import ModuleContextError


class ModuleContextStack:
    """Strict push/pop stack of module names."""

    def __init__(self):
        self._stack: List[str] = []
        self._default: Optional[str] = None

    def push(self, name: str) -> None:
        self._stack.append(name)

    def pop(self) -> str:
        if not self._stack:
            raise ModuleContextError("Module context stack is empty")
        return self._stack.pop()

    def current_name(self) -> Optional[str]:
        """Top of stack, or the default module when nothing is pushed."""
        if self._stack:
            return self._stack[-1]
        return self._default

    def set_default(self, name: Optional[str]) -> None:
        self._default = name

    @contextmanager
    def frame(self, name: str) -> Iterator[str]:
        """Push ``name`` for the duration of the block."""
        self.push(name)
        try:
            yield name
        finally:
            self.pop()

    @property
    def depth(self) -> int:
        return len(self._stack)

    def __len__(self) -> int:
        return len(self._stack)

    def __repr__(self) -> str:
        return f"ModuleContextStack({self._stack!r})"
