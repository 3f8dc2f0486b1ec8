import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain

from ordering.addresses import reset_address_book, set_address_book
from ordering.addresses.memory_adapter import InMemoryAddressBook
from ordering.cart.items import AddToCart
from ordering.cart.management import CreateCart
from ordering.checkout.guard import CheckoutGuard
from ordering.checkout.workflow import CheckoutWorkflow
from ordering.config import CheckoutSettings, reset_settings, set_settings
from ordering.gateway import reset_gateway, set_gateway
from ordering.gateway.fake_adapter import FakeGateway
from ordering.gateway.port import CardDetails


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def settings():
    settings = CheckoutSettings()
    set_settings(settings)
    yield settings
    reset_settings()


@pytest.fixture(autouse=True)
def gateway():
    gateway = FakeGateway()
    set_gateway(gateway)
    yield gateway
    reset_gateway()


@pytest.fixture(autouse=True)
def address_book():
    book = InMemoryAddressBook()
    set_address_book(book)
    yield book
    reset_address_book()


@pytest.fixture()
def workflow(settings):
    return CheckoutWorkflow(guard=CheckoutGuard(), settings=settings)


@pytest.fixture()
def card():
    return CardDetails(
        number="4111111111111111",
        holder_name="Ana Torres",
        expiry_month=12,
        expiry_year=2030,
        cvv="123",
    )


@pytest.fixture()
def make_cart():
    """Create a persisted cart holding ``lines`` of (product_id, quantity, unit_price)."""

    def _make(customer_id="cust-001", lines=(("p1", 2, 1000),)):
        cart_id = current_domain.process(CreateCart(customer_id=customer_id), asynchronous=False)
        for product_id, quantity, unit_price in lines:
            current_domain.process(
                AddToCart(
                    cart_id=cart_id,
                    product_id=product_id,
                    quantity=quantity,
                    unit_price=unit_price,
                ),
                asynchronous=False,
            )
        return cart_id

    return _make
