"""Read-only selectors."""

from receiving_kernel.selectors.base import BaseSelector

__all__ = ["BaseSelector"]
