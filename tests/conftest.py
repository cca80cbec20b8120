import pytest

from invoicepro import create_app
from invoicepro.clients import ClientRecordManager
from invoicepro.config import TestingConfig
from invoicepro.invoices import InvoiceRecordManager
from invoicepro.models import db
from invoicepro.stores import MemoryStore, SQLStore

OWNER = 'user-1'
OTHER = 'user-2'


class DemoTestingConfig(TestingConfig):
    INVOICEPRO_BACKEND = 'demo'


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def demo_app():
    return create_app(DemoTestingConfig)


@pytest.fixture
def client(demo_app):
    return demo_app.test_client()


@pytest.fixture(params=['memory', 'sql'])
def store(request, app):
    """Every record-manager test runs against both store implementations."""
    if request.param == 'memory':
        store = MemoryStore()
        _seed_users(store)
        yield store
        return

    with app.app_context():
        store = SQLStore(db)
        _seed_users(store)
        yield store


def _seed_users(store):
    store.insert('users', [
        {'id': OWNER, 'email': 'owner@example.com', 'name': 'Owner'},
        {'id': OTHER, 'email': 'other@example.com', 'name': 'Other'},
    ])


@pytest.fixture
def clients(store):
    return ClientRecordManager(store)


@pytest.fixture
def invoices(store):
    return InvoiceRecordManager(store, public_base_url='https://pay.example.test')


@pytest.fixture
def acme(clients):
    return clients.add(OWNER, {'name': 'Acme Corporation', 'email': 'billing@acme.test'})


def item(name='Consulting', quantity=1, price=100.0, discount=0):
    return {'name': name, 'quantity': quantity, 'price': price, 'discount': discount}
