"""Product catalog factory.

Provides get_catalog() / set_catalog() to swap implementations. The
FakeCatalog default serves development and tests.
"""

from orders.catalog.fake_adapter import FakeCatalog
from orders.catalog.port import ProductCatalog

_current_catalog: ProductCatalog | None = None


def get_catalog() -> ProductCatalog:
    """Return the current product catalog. Defaults to FakeCatalog."""
    global _current_catalog
    if _current_catalog is None:
        _current_catalog = FakeCatalog()
    return _current_catalog


def set_catalog(catalog: ProductCatalog) -> None:
    """Override the active catalog (useful for tests)."""
    global _current_catalog
    _current_catalog = catalog


def reset_catalog() -> None:
    """Reset to default catalog."""
    global _current_catalog
    _current_catalog = None
