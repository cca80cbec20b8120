import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

INVOICE_STATUSES = ('draft', 'sent', 'paid', 'overdue')


def new_id():
    return str(uuid.uuid4())


def utcnow():
    # Naive UTC, matching the DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(db.Model):
    """Profile record layered on top of the identity provider's user id."""
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True)
    email = db.Column(db.String, unique=True, nullable=False)
    name = db.Column(db.String, nullable=False)
    company = db.Column(db.String)
    address = db.Column(db.String)
    phone = db.Column(db.String)
    logo = db.Column(db.String)
    is_admin = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    clients = db.relationship('Client', backref='owner', lazy=True, cascade="all, delete")
    invoices = db.relationship('Invoice', backref='owner', lazy=True, cascade="all, delete")

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'company': self.company,
            'address': self.address,
            'phone': self.phone,
            'logo': self.logo,
            'is_admin': self.is_admin,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }


class Client(db.Model):
    __tablename__ = 'clients'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String, nullable=False)
    email = db.Column(db.String, nullable=False)
    company = db.Column(db.String)
    address = db.Column(db.String)
    phone = db.Column(db.String)
    tax_id = db.Column(db.String)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    invoices = db.relationship('Invoice', backref='client', lazy=True, cascade="all, delete")

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'name': self.name,
            'email': self.email,
            'company': self.company,
            'address': self.address,
            'phone': self.phone,
            'tax_id': self.tax_id,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }


class Invoice(db.Model):
    __tablename__ = 'invoices'
    __table_args__ = (
        db.UniqueConstraint('user_id', 'invoice_number', name='uq_invoices_user_number'),
        db.CheckConstraint(
            "status IN ('draft', 'sent', 'paid', 'overdue')", name='ck_invoices_status'
        ),
    )
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    client_id = db.Column(db.String(36), db.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False, index=True)
    invoice_number = db.Column(db.String, nullable=False)
    status = db.Column(db.String, default='draft', nullable=False, index=True)
    subtotal = db.Column(db.Float, default=0)
    discount = db.Column(db.Float, default=0)
    tax_rate = db.Column(db.Float, default=0)
    tax_amount = db.Column(db.Float, default=0)
    total = db.Column(db.Float, nullable=False)
    currency = db.Column(db.String(3), default='USD')
    issue_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    notes = db.Column(db.Text)
    terms = db.Column(db.Text)
    payment_link = db.Column(db.String)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    items = db.relationship('InvoiceItem', backref='invoice', lazy=True, cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'client_id': self.client_id,
            'invoice_number': self.invoice_number,
            'status': self.status,
            'subtotal': self.subtotal,
            'discount': self.discount,
            'tax_rate': self.tax_rate,
            'tax_amount': self.tax_amount,
            'total': self.total,
            'currency': self.currency,
            'issue_date': self.issue_date,
            'due_date': self.due_date,
            'notes': self.notes,
            'terms': self.terms,
            'payment_link': self.payment_link,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }


class InvoiceItem(db.Model):
    __tablename__ = 'invoice_items'
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    invoice_id = db.Column(db.String(36), db.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String, nullable=False)
    description = db.Column(db.String)
    position = db.Column(db.Integer, default=0, nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Float, nullable=False)
    discount = db.Column(db.Float, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'invoice_id': self.invoice_id,
            'name': self.name,
            'description': self.description,
            'position': self.position,
            'quantity': self.quantity,
            'price': self.price,
            'discount': self.discount,
            'created_at': self.created_at,
        }
