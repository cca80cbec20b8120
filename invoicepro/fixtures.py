"""Demo identities and the records the in-memory backend starts with."""
from datetime import date, datetime

from .identity import FixtureAccount

ADMIN_ID = '00000000-0000-0000-0000-000000000001'
DEMO_ID = '00000000-0000-0000-0000-000000000002'

DEMO_ACCOUNTS = (
    FixtureAccount(
        id=ADMIN_ID,
        email='admin@invoicepro.com',
        password='admin123',
        profile={
            'name': 'System Administrator',
            'company': 'InvoicePro',
            'is_admin': True,
        },
    ),
    FixtureAccount(
        id=DEMO_ID,
        email='demo@invoicepro.com',
        password=None,
        profile={
            'name': 'Demo User',
            'company': 'Demo Company',
            'address': '123 Demo Street, Demo City, DC 12345',
            'phone': '+1 (555) 123-4567',
            'is_admin': False,
        },
    ),
)


def demo_seed(accounts=DEMO_ACCOUNTS):
    """Rows keyed by table, in insertion order (parents before children)."""
    acme_id = '00000000-0000-0000-0001-000000000001'
    tech_id = '00000000-0000-0000-0001-000000000002'
    invoice_id = '00000000-0000-0000-0002-000000000001'

    return {
        'users': [dict(account.profile, id=account.id, email=account.email) for account in accounts],
        'clients': [
            {
                'id': acme_id,
                'user_id': DEMO_ID,
                'name': 'Acme Corporation',
                'email': 'contact@acme.com',
                'phone': '+1 (555) 123-4567',
                'address': '123 Business St, Suite 100, New York, NY 10001',
                'created_at': datetime(2024, 1, 15, 10, 0),
                'updated_at': datetime(2024, 1, 15, 10, 0),
            },
            {
                'id': tech_id,
                'user_id': DEMO_ID,
                'name': 'Tech Solutions Inc',
                'email': 'hello@techsolutions.com',
                'phone': '+1 (555) 987-6543',
                'address': '456 Innovation Ave, San Francisco, CA 94105',
                'created_at': datetime(2024, 1, 20, 14, 30),
                'updated_at': datetime(2024, 1, 20, 14, 30),
            },
        ],
        'invoices': [
            {
                'id': invoice_id,
                'user_id': DEMO_ID,
                'client_id': acme_id,
                'invoice_number': 'INV-2024-0001',
                'status': 'sent',
                'subtotal': 2500.00,
                'discount': 0,
                'tax_rate': 8.5,
                'tax_amount': 212.50,
                'total': 2712.50,
                'currency': 'USD',
                'issue_date': date(2024, 1, 15),
                'due_date': date(2024, 2, 15),
                'notes': 'Thank you for your business!',
                'created_at': datetime(2024, 1, 15, 10, 0),
                'updated_at': datetime(2024, 1, 15, 10, 0),
            },
        ],
        'invoice_items': [
            {
                'invoice_id': invoice_id,
                'name': 'Web Development Services',
                'quantity': 50,
                'price': 50.00,
                'discount': 0,
                'created_at': datetime(2024, 1, 15, 10, 0),
            },
        ],
    }
