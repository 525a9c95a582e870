"""Base classes shared by long-lived components."""

from __future__ import annotations

from kernel_autotuner.utils.logger import get_logger


class BaseComponent:
    """Provide a structlog logger bound to the concrete class name."""

    def __init__(self) -> None:
        """Bind the component logger."""
        self.logger = get_logger(self.__class__.__name__)


__all__ = ["BaseComponent"]
