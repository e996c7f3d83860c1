import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def orders_bed():
    from orders.domain import orders

    bed = DomainFixture(orders)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(orders_bed):
    with orders_bed.domain_context():
        yield

        from protean import current_domain

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def reset_adapters():
    """Put every swappable collaborator back to its default after each test."""
    yield

    from orders.catalog import reset_catalog
    from orders.notifications import reset_notifier
    from orders.order.dispatch import reset_locks
    from orders.order.schedule import reset_risk_scorer
    from orders.penalty import reset_penalty_policy

    reset_catalog()
    reset_notifier()
    reset_penalty_policy()
    reset_risk_scorer()
    reset_locks()


@pytest.fixture()
def catalog():
    """Fake catalog stocked with a few products from two sellers."""
    from orders.catalog import get_catalog

    fake = get_catalog()
    fake.register("prod-laptop", "seller-001", "Laptop", 30000.00, "https://cdn.example.com/laptop.jpg")
    fake.register("prod-phone", "seller-001", "Phone", 10000.00)
    fake.register("prod-case", "seller-002", "Phone Case", 19.99)
    return fake


@pytest.fixture()
def notifier():
    from orders.notifications import get_notifier

    return get_notifier()
