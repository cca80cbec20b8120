"""
Input schemas

Each pydantic model describes what the API accepts for one operation. Unknown
keys are ignored, so ownership columns (id, user_id, invoice_number) can never
be smuggled in through a payload.
"""
from datetime import date
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

Status = Literal['draft', 'sent', 'paid', 'overdue']


def _check_email(value):
    if value is not None and '@' not in value:
        raise ValueError('Enter a valid email address')
    return value


Email = Annotated[str, Field(min_length=1), AfterValidator(_check_email)]


class ClientInput(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    name: str = Field(..., min_length=1, description="Contact name")
    email: Email = Field(..., description="Billing email")
    company: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    tax_id: Optional[str] = None


class ClientPatch(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1)
    email: Optional[Email] = None
    company: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    tax_id: Optional[str] = None


class InvoiceItemInput(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    name: str = Field(..., min_length=1, description="What is being billed")
    description: Optional[str] = None
    quantity: int = Field(1, ge=1)
    price: float = Field(..., ge=0, description="Unit price")
    discount: float = Field(0, ge=0, le=100, description="Per-item discount percentage")


class InvoiceItemsInput(BaseModel):
    items: List[InvoiceItemInput] = Field(..., min_length=1, description="At least one line item")


class PreviewInput(InvoiceItemsInput):
    model_config = ConfigDict(extra='ignore')

    discount: float = Field(0, ge=0, le=100)
    tax_rate: float = Field(0, ge=0, le=100)
    currency: str = Field('USD', min_length=3, max_length=3)


class InvoiceInput(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    client_id: str = Field(..., min_length=1)
    items: List[InvoiceItemInput] = Field(..., min_length=1, description="At least one line item")
    discount: float = Field(0, ge=0, le=100, description="Invoice-level discount percentage")
    tax_rate: float = Field(0, ge=0, le=100, description="Tax rate percentage")
    currency: str = Field('USD', min_length=3, max_length=3)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None

    @field_validator('currency')
    @classmethod
    def upper_currency(cls, value):
        return value.upper()

    @field_validator('due_date')
    @classmethod
    def due_after_issue(cls, value, info):
        issue_date = info.data.get('issue_date')
        if value is not None and issue_date is not None and value < issue_date:
            raise ValueError('Due date cannot be before the issue date')
        return value


class InvoicePatch(BaseModel):
    """Partial invoice update. Computed amounts (subtotal, tax, total) are not
    accepted; they follow from the items, discount and tax rate."""
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    client_id: Optional[str] = Field(None, min_length=1)
    status: Optional[Status] = None
    discount: Optional[float] = Field(None, ge=0, le=100)
    tax_rate: Optional[float] = Field(None, ge=0, le=100)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    payment_link: Optional[str] = None


class ProfilePatch(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1)
    company: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    logo: Optional[str] = None


class RegisterInput(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    email: Email
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    company: Optional[str] = None


class LoginInput(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    email: str = Field(..., min_length=1)
    password: str = ''


def validate(schema, data):
    """Parse ``data`` with ``schema`` or raise a per-field ValidationError."""
    try:
        return schema.model_validate(data if data is not None else {})
    except PydanticValidationError as exc:
        errors = {}
        for error in exc.errors():
            field = '.'.join(str(part) for part in error['loc']) or 'non_field'
            errors.setdefault(field, error['msg'])
        raise ValidationError(errors) from exc


def changes(patch):
    """Only the fields the caller actually sent."""
    return patch.model_dump(exclude_unset=True)


def reject_nulls(values, required):
    """Required columns may be left out of a patch but never cleared."""
    errors = {name: 'This field may not be empty' for name in required if name in values and values[name] is None}
    if errors:
        raise ValidationError(errors)
    return values
