from types import SimpleNamespace

import pytest

from invoicepro import calculations


def test_line_amount_applies_item_discount():
    assert calculations.line_amount({'quantity': 2, 'price': 100, 'discount': 10}) == pytest.approx(180.0)


def test_line_amount_without_discount_key():
    assert calculations.line_amount({'quantity': 3, 'price': 19.99}) == pytest.approx(59.97)


def test_line_amount_reads_attributes():
    item = SimpleNamespace(quantity=4, price=25.0, discount=50)
    assert calculations.line_amount(item) == pytest.approx(50.0)


def test_line_amount_full_discount_is_zero():
    assert calculations.line_amount({'quantity': 7, 'price': 12.5, 'discount': 100}) == 0


def test_subtotal_is_independent_of_item_order():
    items = [
        {'quantity': 1, 'price': 0.1, 'discount': 0},
        {'quantity': 3, 'price': 33.33, 'discount': 5},
        {'quantity': 10, 'price': 7.25, 'discount': 12.5},
    ]
    forward = calculations.subtotal(items)
    backward = calculations.subtotal(list(reversed(items)))

    assert forward == pytest.approx(backward)
    assert forward == pytest.approx(sum(calculations.line_amount(i) for i in items))


def test_subtotal_of_no_items_is_zero():
    assert calculations.subtotal([]) == 0


def test_single_item_with_tax_only():
    amounts = calculations.calculate_invoice([{'quantity': 50, 'price': 50, 'discount': 0}], 0, 8.5)

    assert amounts.subtotal == pytest.approx(2500.00)
    assert amounts.discount_amount == pytest.approx(0)
    assert amounts.tax_amount == pytest.approx(212.50)
    assert amounts.total == pytest.approx(2712.50)


def test_item_discount_invoice_discount_and_tax():
    items = [{'quantity': 2, 'price': 100, 'discount': 10}]
    sub = calculations.subtotal(items)
    totals = calculations.calculate_total(sub, 5, 10)

    assert sub == pytest.approx(180.00)
    assert totals.discount_amount == pytest.approx(9.00)
    assert totals.tax_amount == pytest.approx(17.10)
    assert totals.total == pytest.approx(188.10)


def test_tax_is_charged_on_the_discounted_subtotal():
    totals = calculations.calculate_total(1000, 20, 10)

    assert totals.tax_amount == pytest.approx(80.0)
    assert totals.tax_amount != pytest.approx(calculations.tax_amount(1000, 10))
    assert totals.total == pytest.approx(1000 - totals.discount_amount + totals.tax_amount)


def test_invoice_discount_amount():
    assert calculations.invoice_discount_amount(250, 12) == pytest.approx(30)
    assert calculations.invoice_discount_amount(250, None) == 0


def test_round_money():
    assert calculations.round_money(188.10000000000002) == 188.1
    assert calculations.round_money(0.125 + 0.0001) == 0.13


@pytest.mark.parametrize('amount, currency, expected', [
    (2712.5, 'USD', '$2,712.50'),
    (-9, 'eur', '-€9.00'),
    (0, 'GBP', '£0.00'),
    (10, 'CHF', 'CHF 10.00'),
    (1234.6, 'JPY', '¥1,235'),
    (1500, None, '$1,500.00'),
])
def test_format_currency(amount, currency, expected):
    assert calculations.format_currency(amount, currency) == expected
