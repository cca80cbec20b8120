from datetime import date, datetime, timezone

import pytest

from invoicepro.errors import StoreError
from invoicepro.stores import MemoryStore

from conftest import OWNER


def _invoice_row(client_id, number, **extra):
    row = {
        'user_id': OWNER,
        'client_id': client_id,
        'invoice_number': number,
        'total': 10.0,
        'issue_date': date(2026, 1, 1),
        'due_date': date(2026, 1, 31),
    }
    row.update(extra)
    return row


@pytest.fixture
def client_row(store):
    return store.insert('clients', [{'user_id': OWNER, 'name': 'Acme', 'email': 'a@acme.test'}])[0]


def test_insert_fills_defaults(store, client_row):
    invoice = store.insert('invoices', [_invoice_row(client_row['id'], 'INV-2026-0001')])[0]

    assert invoice['id']
    assert invoice['status'] == 'draft'
    assert invoice['currency'] == 'USD'
    assert invoice['discount'] == 0
    assert isinstance(invoice['created_at'], datetime)


def test_select_filters_and_orders(store, client_row):
    store.insert('invoices', [
        _invoice_row(client_row['id'], 'INV-2026-0001', created_at=datetime(2026, 1, 1)),
        _invoice_row(client_row['id'], 'INV-2026-0002', created_at=datetime(2026, 3, 1), status='paid'),
        _invoice_row(client_row['id'], 'INV-2026-0003', created_at=datetime(2026, 2, 1)),
    ])

    newest_first = store.select('invoices', {'user_id': OWNER}, order_by='created_at', desc=True)
    assert [i['invoice_number'] for i in newest_first] == ['INV-2026-0002', 'INV-2026-0003', 'INV-2026-0001']

    paid = store.select('invoices', {'status': 'paid'})
    assert [i['invoice_number'] for i in paid] == ['INV-2026-0002']

    assert store.count('invoices', {'user_id': OWNER}) == 3
    assert store.count('invoices', {'user_id': 'nobody'}) == 0


def test_update_returns_changed_rows(store, client_row):
    invoice = store.insert('invoices', [_invoice_row(client_row['id'], 'INV-2026-0001')])[0]

    updated = store.update('invoices', {'status': 'sent'}, {'id': invoice['id']})

    assert [row['status'] for row in updated] == ['sent']
    assert store.get('invoices', {'id': invoice['id']})['status'] == 'sent'


def test_deleting_invoice_cascades_to_items(store, client_row):
    invoice = store.insert('invoices', [_invoice_row(client_row['id'], 'INV-2026-0001')])[0]
    store.insert('invoice_items', [
        {'invoice_id': invoice['id'], 'name': 'A', 'price': 1.0},
        {'invoice_id': invoice['id'], 'name': 'B', 'price': 2.0},
    ])

    assert store.delete('invoices', {'id': invoice['id']}) == 1
    assert store.select('invoice_items', {'invoice_id': invoice['id']}) == []


def test_deleting_client_cascades_to_invoices(store, client_row):
    invoice = store.insert('invoices', [_invoice_row(client_row['id'], 'INV-2026-0001')])[0]
    store.insert('invoice_items', [{'invoice_id': invoice['id'], 'name': 'A', 'price': 1.0}])

    store.delete('clients', {'id': client_row['id']})

    assert store.get('invoices', {'id': invoice['id']}) is None
    assert store.count('invoice_items') == 0


def test_memory_store_returns_copies():
    store = MemoryStore()
    row = store.insert('users', [{'id': 'u1', 'email': 'u1@example.com', 'name': 'U1'}])[0]
    row['name'] = 'changed'

    assert store.get('users', {'id': 'u1'})['name'] == 'U1'


def test_memory_store_enforces_per_user_invoice_number():
    store = MemoryStore()
    row = _invoice_row('c1', 'INV-2026-0001')
    store.insert('invoices', [row])

    with pytest.raises(StoreError):
        store.insert('invoices', [row])

    # Same number for another user is fine
    store.insert('invoices', [dict(row, user_id='someone-else')])
    assert store.count('invoices') == 2


def test_memory_store_rejects_missing_required_column():
    store = MemoryStore()
    with pytest.raises(StoreError, match='email'):
        store.insert('clients', [{'user_id': OWNER, 'name': 'No email'}])


def test_memory_store_rejects_unknown_table_and_column():
    store = MemoryStore()
    with pytest.raises(StoreError):
        store.select('admin_users')
    with pytest.raises(StoreError):
        store.insert('users', [{'id': 'u1', 'email': 'x@example.com', 'name': 'X', 'shoe_size': 44}])


def test_memory_store_seed_is_loaded():
    store = MemoryStore({'users': [{'id': 'u1', 'email': 'u1@example.com', 'name': 'U1'}]})
    assert store.count('users') == 1


def test_timestamps_are_naive_utc():
    store = MemoryStore()
    row = store.insert('users', [{'id': 'u1', 'email': 'u1@example.com', 'name': 'U1'}])[0]

    assert row['created_at'].tzinfo is None
    assert abs((datetime.now(timezone.utc).replace(tzinfo=None) - row['created_at']).total_seconds()) < 60
