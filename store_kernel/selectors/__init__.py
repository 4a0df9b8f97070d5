"""Read-only selectors."""

from store_kernel.selectors.request_selector import RequestSelector

__all__ = ["RequestSelector"]
