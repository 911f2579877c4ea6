"""Process-wide capability objects and their lazy initialization.

Builders never reach for globals: they receive a :class:`MeshKernel`
(and a font source) explicitly. The module-level :class:`Lazy` holders
only memoize *construction* of those objects. A failed construction is
not cached, so the next call retries instead of replaying the failure.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from plategen.errors import CapabilityInitError
from plategen.fonts import FontCache
from plategen.kernel import MeshKernel

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class InitResult(Generic[T]):
    ok: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None

    def __bool__(self) -> bool:
        return self.ok

    def unwrap(self) -> T:
        """Return the value or raise :class:`CapabilityInitError`."""

        if not self.ok:
            if isinstance(self.error, CapabilityInitError):
                raise self.error
            raise CapabilityInitError(str(self.error)) from self.error
        return self.value


class Lazy(Generic[T]):
    """Thread-safe memoized factory with failure reset."""

    def __init__(self, factory: Callable[[], T], name: str = ""):
        self._factory = factory
        self._name = name or getattr(factory, "__name__", "capability")
        self._value: Optional[T] = None
        self._ready = False
        self._lock = threading.Lock()

    @property
    def ready(self) -> bool:
        return self._ready

    def get(self) -> InitResult[T]:
        with self._lock:
            if self._ready:
                return InitResult(True, self._value)
            try:
                value = self._factory()
            except Exception as exc:
                logger.warning("initializing %s failed: %s", self._name, exc)
                return InitResult(False, error=exc)
            self._value = value
            self._ready = True
            return InitResult(True, value)

    def reset(self) -> None:
        with self._lock:
            self._value = None
            self._ready = False


@dataclass(frozen=True)
class Capabilities:
    """The external collaborators a build needs."""

    kernel: MeshKernel
    fonts: FontCache


_kernel = Lazy(MeshKernel.load, "mesh kernel")
_fonts = Lazy(FontCache, "font cache")


def load_kernel() -> InitResult[MeshKernel]:
    return _kernel.get()


def load_capabilities() -> InitResult[Capabilities]:
    """Initialize (once) and return the kernel and font cache."""

    kernel = _kernel.get()
    if not kernel:
        return InitResult(False, error=kernel.error)
    fonts = _fonts.get()
    if not fonts:
        return InitResult(False, error=fonts.error)
    return InitResult(True, Capabilities(kernel.value, fonts.value))


def reset_capabilities() -> None:
    _kernel.reset()
    _fonts.reset()


__all__ = [
    'Capabilities',
    'InitResult',
    'Lazy',
    'load_capabilities',
    'load_kernel',
    'reset_capabilities',
]
