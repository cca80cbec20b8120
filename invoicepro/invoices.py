import logging
from datetime import date, timedelta

from . import calculations
from .errors import InvalidTransitionError, NotFoundError, ValidationError
from .models import INVOICE_STATUSES
from .schemas import (InvoiceInput, InvoiceItemsInput, InvoicePatch, PreviewInput,
                      changes, reject_nulls, validate)

logger = logging.getLogger(__name__)

NUMBER_FORMAT = 'INV-{year}-{sequence:04d}'

# Invoice fields the computed amounts depend on (besides the items)
AMOUNT_INPUTS = ('discount', 'tax_rate')

# Same-status writes are always allowed (marking a paid invoice paid again is
# a no-op). Nothing ever goes back to draft and paid is final.
TRANSITIONS = {
    'draft': {'sent', 'paid'},
    'sent': {'paid', 'overdue'},
    'overdue': {'paid'},
    'paid': set(),
}


def check_transition(current, requested):
    if requested != current and requested not in TRANSITIONS.get(current, ()):
        raise InvalidTransitionError(current, requested)


def filter_by_status(invoices, status):
    """Match on the stored status field only; due dates are not consulted."""
    return [invoice for invoice in invoices if invoice.get('status') == status]


def status_filter(value):
    """Normalize a ``?status=`` argument. ``None`` means no filtering."""
    status = (value or 'all').strip().lower()
    if status == 'all':
        return None
    if status not in INVOICE_STATUSES:
        raise ValidationError({'status': f"Unknown status '{value}'"})
    return status


def search(invoices, term):
    """Case-insensitive match on invoice number, client name and client email."""
    term = (term or '').strip().lower()
    if not term:
        return list(invoices)

    def matches(invoice):
        client = invoice.get('client') or {}
        fields = (invoice.get('invoice_number'), client.get('name'), client.get('email'))
        return any(term in (value or '').lower() for value in fields)

    return [invoice for invoice in invoices if matches(invoice)]


class InvoiceRecordManager:
    """Invoices and their line items, persisted together and scoped by owner."""

    def __init__(self, store, public_base_url='', default_currency='USD', payment_terms_days=30):
        self.store = store
        self.public_base_url = public_base_url.rstrip('/')
        self.default_currency = default_currency
        self.payment_terms_days = payment_terms_days

    filter_by_status = staticmethod(filter_by_status)
    search = staticmethod(search)

    def _attach(self, invoice):
        invoice['client'] = self.store.get('clients', {'id': invoice['client_id']})
        invoice['invoice_items'] = self.store.select(
            'invoice_items', {'invoice_id': invoice['id']}, order_by='position')
        return invoice

    def _owned(self, invoice_id, user_id):
        invoice = self.store.get('invoices', {'id': invoice_id, 'user_id': user_id})
        if invoice is None:
            raise NotFoundError('Invoice not found')
        return invoice

    def _check_client(self, client_id, user_id):
        if self.store.get('clients', {'id': client_id, 'user_id': user_id}) is None:
            raise ValidationError({'client_id': 'Unknown client'})

    @staticmethod
    def _item_rows(invoice_id, items):
        return [
            dict(item.model_dump(), invoice_id=invoice_id, position=position)
            for position, item in enumerate(items)
        ]

    @staticmethod
    def _amount_fields(amounts):
        return {
            'subtotal': calculations.round_money(amounts.subtotal),
            'tax_amount': calculations.round_money(amounts.tax_amount),
            'total': calculations.round_money(amounts.total),
        }

    def list(self, user_id):
        invoices = self.store.select('invoices', {'user_id': user_id}, order_by='created_at', desc=True)
        return [self._attach(invoice) for invoice in invoices]

    def get(self, invoice_id, user_id):
        return self._attach(self._owned(invoice_id, user_id))

    def generate_number(self, user_id, today=None):
        # Count-then-format: two concurrent creations for one user can compute
        # the same number. The per-user unique constraint rejects the second.
        # Deleting an older invoice leaves count + 1 already taken; skip past it.
        sequence = self.store.count('invoices', {'user_id': user_id}) + 1
        year = (today or date.today()).year
        number = NUMBER_FORMAT.format(year=year, sequence=sequence)
        while self.store.get('invoices', {'user_id': user_id, 'invoice_number': number}) is not None:
            sequence += 1
            number = NUMBER_FORMAT.format(year=year, sequence=sequence)
        return number

    def preview(self, data):
        payload = validate(PreviewInput, data)
        amounts = calculations.calculate_invoice(payload.items, payload.discount, payload.tax_rate)
        return {
            'items': [dict(item.model_dump(), amount=calculations.line_amount(item)) for item in payload.items],
            'subtotal': amounts.subtotal,
            'discount_amount': amounts.discount_amount,
            'tax_amount': amounts.tax_amount,
            'total': amounts.total,
            'currency': payload.currency.upper(),
        }

    def create(self, user_id, client_id, items, fields=None):
        data = dict(fields or {}, client_id=client_id, items=items)
        data.setdefault('currency', self.default_currency)
        payload = validate(InvoiceInput, data)
        self._check_client(payload.client_id, user_id)

        issue_date = payload.issue_date or date.today()
        due_date = payload.due_date or issue_date + timedelta(days=self.payment_terms_days)
        if due_date < issue_date:
            raise ValidationError({'due_date': 'Due date cannot be before the issue date'})

        amounts = calculations.calculate_invoice(payload.items, payload.discount, payload.tax_rate)
        row = dict(
            self._amount_fields(amounts),
            user_id=user_id,
            client_id=payload.client_id,
            invoice_number=self.generate_number(user_id),
            status='draft',
            discount=payload.discount,
            tax_rate=payload.tax_rate,
            currency=payload.currency,
            issue_date=issue_date,
            due_date=due_date,
            notes=payload.notes,
            terms=payload.terms,
        )
        invoice = self.store.insert('invoices', [row])[0]

        try:
            self.store.insert('invoice_items', self._item_rows(invoice['id'], payload.items))
        except Exception:
            logger.exception("Saving items failed, removing invoice %s", invoice['invoice_number'])
            try:
                self.store.delete('invoices', {'id': invoice['id']})
            except Exception:
                logger.exception("Could not remove orphaned invoice %s", invoice['id'])
            raise

        logger.info("Created invoice %s for user %s", invoice['invoice_number'], user_id)
        return self.get(invoice['id'], user_id)

    def update(self, invoice_id, user_id, patch):
        """Apply a partial update.

        Items are not touched here (see ``replace_items``). A new discount or
        tax rate is applied to the stored items so the amounts stay in step.
        """
        values = reject_nulls(
            changes(validate(InvoicePatch, patch)),
            ('client_id', 'status', 'discount', 'tax_rate', 'issue_date', 'due_date', 'currency'),
        )
        invoice = self._owned(invoice_id, user_id)

        if 'status' in values:
            check_transition(invoice['status'], values['status'])
        if 'client_id' in values and values['client_id'] != invoice['client_id']:
            self._check_client(values['client_id'], user_id)
        if 'currency' in values:
            values['currency'] = values['currency'].upper()
        if invoice['status'] == 'paid':
            locked = {name: 'Paid invoices cannot be edited' for name in AMOUNT_INPUTS
                      if name in values and values[name] != invoice[name]}
            if locked:
                raise ValidationError(locked)

        issue_date = values.get('issue_date', invoice['issue_date'])
        due_date = values.get('due_date', invoice['due_date'])
        if issue_date and due_date and due_date < issue_date:
            raise ValidationError({'due_date': 'Due date cannot be before the issue date'})

        if any(name in values for name in AMOUNT_INPUTS):
            items = self.store.select('invoice_items', {'invoice_id': invoice_id})
            amounts = calculations.calculate_invoice(
                items, values.get('discount', invoice['discount']), values.get('tax_rate', invoice['tax_rate']))
            values.update(self._amount_fields(amounts))

        if values:
            self.store.update('invoices', values, {'id': invoice_id, 'user_id': user_id})
        return self.get(invoice_id, user_id)

    def replace_items(self, invoice_id, user_id, items):
        """Swap the line items and recompute amounts from the stored discount and tax rate."""
        payload = validate(InvoiceItemsInput, {'items': items})
        invoice = self._owned(invoice_id, user_id)
        if invoice['status'] == 'paid':
            raise ValidationError({'items': 'Paid invoices cannot be edited'})

        self.store.delete('invoice_items', {'invoice_id': invoice_id})
        self.store.insert('invoice_items', self._item_rows(invoice_id, payload.items))

        amounts = calculations.calculate_invoice(payload.items, invoice['discount'], invoice['tax_rate'])
        self.store.update('invoices', self._amount_fields(amounts), {'id': invoice_id, 'user_id': user_id})
        return self.get(invoice_id, user_id)

    def delete(self, invoice_id, user_id):
        self._owned(invoice_id, user_id)
        self.store.delete('invoices', {'id': invoice_id, 'user_id': user_id})

    def mark_paid(self, invoice_id, user_id):
        return self.update(invoice_id, user_id, {'status': 'paid'})

    def send(self, invoice_id, user_id):
        return self.update(invoice_id, user_id, {
            'status': 'sent',
            'payment_link': f'{self.public_base_url}/invoice/{invoice_id}',
        })

    def mark_overdue(self, today=None):
        """Flip every sent invoice whose due date has passed to overdue.

        Runs across all users; returns the invoices that changed.
        """
        today = today or date.today()
        changed = []
        for invoice in self.store.select('invoices', {'status': 'sent'}):
            if invoice['due_date'] and invoice['due_date'] < today:
                changed.extend(self.store.update('invoices', {'status': 'overdue'}, {'id': invoice['id']}))
        return changed
