"""In-memory product catalog for development and testing.

Products are registered at runtime; every lookup is recorded so tests can
assert that snapshots are captured once and never re-fetched.
"""

from orders.catalog.port import ProductCatalog, ProductSnapshot


class FakeCatalog(ProductCatalog):
    def __init__(self) -> None:
        self.products: dict[str, ProductSnapshot] = {}
        self.lookups: list[str] = []

    def register(
        self,
        product_id: str,
        seller_id: str,
        title: str,
        unit_price: float,
        image_url: str | None = None,
    ) -> ProductSnapshot:
        snapshot = ProductSnapshot(
            product_id=product_id,
            seller_id=seller_id,
            title=title,
            unit_price=unit_price,
            image_url=image_url,
        )
        self.products[product_id] = snapshot
        return snapshot

    def lookup(self, product_id: str) -> ProductSnapshot | None:
        self.lookups.append(product_id)
        return self.products.get(product_id)

    def reset(self) -> None:
        self.products.clear()
        self.lookups.clear()
