"""InvoicePro: clients, invoices and line items behind a small JSON API."""
from .app import create_app

__version__ = '1.0.0'
