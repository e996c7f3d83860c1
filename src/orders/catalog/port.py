"""Product catalog port (abstract interface).

The orders domain reads the catalog exactly once per line item, at checkout,
to capture an immutable snapshot. Nothing downstream ever re-fetches it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ProductSnapshot:
    product_id: str
    seller_id: str
    title: str
    unit_price: float
    image_url: str | None = None


class ProductCatalog(ABC):
    @abstractmethod
    def lookup(self, product_id: str) -> ProductSnapshot | None:
        """Return the product as currently listed, or None when unknown."""
        ...
