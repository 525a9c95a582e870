"""Base interface shared by user-facing entry points."""

from __future__ import annotations

from abc import ABC, abstractmethod

from kernel_autotuner.base import BaseComponent


class BaseInterface(BaseComponent, ABC):
    """Abstract entry point driven by :class:`kernel_autotuner.app.Application`."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human readable interface name."""

    @abstractmethod
    def run(self) -> None:
        """Hand control to the interface."""


__all__ = ["BaseInterface"]
