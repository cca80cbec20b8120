"""Invoice money math.

Discount is always applied before tax: the invoice-level discount reduces the
taxable base, and tax is charged on what is left. The same functions feed
invoice creation, the preview endpoint and the PDF, so all three agree.
"""
from collections import namedtuple

Totals = namedtuple('Totals', ['discount_amount', 'tax_amount', 'total'])
InvoiceAmounts = namedtuple('InvoiceAmounts', ['subtotal', 'discount_amount', 'tax_amount', 'total'])

CURRENCY_SYMBOLS = {
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
    'JPY': '¥',
    'INR': '₹',
    'CAD': 'CA$',
    'AUD': 'A$',
}


def _field(item, name, default=None):
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def line_amount(item):
    """quantity * price, less the item's own discount percentage.

    Inputs are not re-validated here; quantity >= 1, price >= 0 and a
    0-100 discount are checked where the data enters the system.
    """
    gross = _field(item, 'quantity', 0) * _field(item, 'price', 0)
    discount = _field(item, 'discount') or 0
    return gross - gross * discount / 100


def subtotal(items):
    return sum(line_amount(item) for item in items)


def invoice_discount_amount(subtotal_amount, discount_pct):
    return subtotal_amount * (discount_pct or 0) / 100


def tax_amount(discounted_subtotal, tax_rate_pct):
    return discounted_subtotal * (tax_rate_pct or 0) / 100


def calculate_total(subtotal_amount, discount_pct, tax_rate_pct):
    discount_amount = invoice_discount_amount(subtotal_amount, discount_pct)
    discounted = subtotal_amount - discount_amount
    tax = tax_amount(discounted, tax_rate_pct)
    return Totals(discount_amount, tax, discounted + tax)


def calculate_invoice(items, discount_pct=0, tax_rate_pct=0):
    sub = subtotal(items)
    totals = calculate_total(sub, discount_pct, tax_rate_pct)
    return InvoiceAmounts(sub, totals.discount_amount, totals.tax_amount, totals.total)


def round_money(amount):
    return round(amount, 2)


def format_currency(amount, currency='USD'):
    """Display-only formatting, e.g. ``$2,712.50`` or ``-€9.00``."""
    currency = (currency or 'USD').upper()
    symbol = CURRENCY_SYMBOLS.get(currency, f'{currency} ')
    digits = 0 if currency == 'JPY' else 2
    sign = '-' if amount < 0 else ''
    return f"{sign}{symbol}{abs(amount):,.{digits}f}"
