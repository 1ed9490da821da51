"""
Named hook pipelines.

A host system exposes extension points (e.g. "check_access_to_object") and
runs every implementation registered for a point in registration order.
Implementations return a HookResult; the first definitive result stops the
pipeline and becomes its answer. Returning None means "no opinion".
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HookResult:
    """
    Outcome of one hook implementation, or of a whole pipeline.

    Attributes:
        value: Result value (meaning depends on the extension point)
        definitive: Whether later implementations must not run
    """

    value: Any = None
    definitive: bool = False

    @classmethod
    def final(cls, value: Any) -> HookResult:
        return cls(value=value, definitive=True)

    @classmethod
    def passthrough(cls, value: Any = None) -> HookResult:
        return cls(value=value, definitive=False)


HookFunc = Callable[..., Optional[HookResult]]


class HookPipeline:
    """
    Ordered implementations of one extension point.

    Usage:
        pipeline = HookPipeline("check_access_to_object")
        pipeline.register("sharing", check_shared_access)
        result = pipeline.run(viewer_id, contact)
        if result.definitive:
            ...
    """

    def __init__(self, name: str):
        self.name = name
        self._hooks: list[tuple[str, HookFunc]] = []

    def register(self, hook_name: str, func: HookFunc) -> None:
        """
        Append an implementation.

        Raises:
            ValueError: If an implementation with the same name is registered
        """
        if hook_name in self.hook_names:
            raise ValueError(
                f"Hook {hook_name!r} is already registered for {self.name!r}"
            )
        self._hooks.append((hook_name, func))
        logger.debug(f"Registered hook {hook_name} on {self.name}")

    def unregister(self, hook_name: str) -> bool:
        """Remove an implementation by name. Returns True if it was found."""
        for index, (name, _) in enumerate(self._hooks):
            if name == hook_name:
                del self._hooks[index]
                return True
        return False

    @property
    def hook_names(self) -> list[str]:
        return [name for name, _ in self._hooks]

    def run(self, *args: Any, **kwargs: Any) -> HookResult:
        """
        Run implementations in order until one is definitive.

        Returns:
            The definitive result, or a non-definitive result carrying the
            last value any implementation produced
        """
        last_value: Any = None
        for hook_name, func in self._hooks:
            result = func(*args, **kwargs)
            if result is None:
                continue
            if result.definitive:
                logger.debug(f"{self.name}: {hook_name} answered definitively")
                return result
            if result.value is not None:
                last_value = result.value
        return HookResult.passthrough(last_value)

    def __len__(self) -> int:
        return len(self._hooks)


class HookRegistry:
    """Pipelines keyed by extension point name, created on first use."""

    def __init__(self) -> None:
        self._pipelines: dict[str, HookPipeline] = {}

    def pipeline(self, point: str) -> HookPipeline:
        if point not in self._pipelines:
            self._pipelines[point] = HookPipeline(point)
        return self._pipelines[point]

    def register(self, point: str, hook_name: str, func: HookFunc) -> None:
        self.pipeline(point).register(hook_name, func)

    def run(self, point: str, *args: Any, **kwargs: Any) -> HookResult:
        """Run a pipeline; an unknown point gives an empty non-definitive result."""
        pipeline = self._pipelines.get(point)
        if pipeline is None:
            return HookResult.passthrough()
        return pipeline.run(*args, **kwargs)

    @property
    def points(self) -> list[str]:
        return sorted(self._pipelines)
