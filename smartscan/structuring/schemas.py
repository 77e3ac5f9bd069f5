"""Pydantic models for AI-structured business documents."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    """Base for records parsed from camelCase JSON replies."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Company(_Record):
    name: str = ""
    tax_id: str | None = None
    address: str | None = None
    contact_info: str | None = None


class Location(_Record):
    name: str = ""
    address: str = ""
    contact_person: str | None = None
    contact_phone: str | None = None


class InvoiceItem(_Record):
    code: str | None = None
    description: str = ""
    quantity: float = 0.0
    unit_price: float = 0.0
    total_price: float = 0.0
    tax_rate: float | None = None


class DeliveryItem(_Record):
    code: str | None = None
    description: str = ""
    quantity: float = 0.0
    package_type: str | None = None
    weight: float | None = None


class Invoice(_Record):
    """Structured invoice."""

    invoice_number: str = ""
    date: str = ""
    due_date: str | None = None
    supplier: Company = Field(default_factory=Company)
    client: Company = Field(default_factory=Company)
    items: list[InvoiceItem] = Field(default_factory=list)
    subtotal: float = 0.0
    tax_amount: float = 0.0
    total_amount: float = 0.0
    payment_terms: str | None = None
    notes: str | None = None
    barcode: str | None = None

    def missing_required(self) -> list[str]:
        return [n for n in ("invoice_number", "date") if not getattr(self, n).strip()]


class DeliveryNote(_Record):
    """Structured delivery note."""

    delivery_note_number: str = ""
    date: str = ""
    origin: Location = Field(default_factory=Location)
    destination: Location = Field(default_factory=Location)
    carrier: str | None = None
    items: list[DeliveryItem] = Field(default_factory=list)
    total_packages: int | None = None
    total_weight: float | None = None
    observations: str | None = None

    def missing_required(self) -> list[str]:
        return [
            n for n in ("delivery_note_number", "date") if not getattr(self, n).strip()
        ]


class WarehouseLabel(_Record):
    """Structured warehouse label."""

    label_id: str = ""
    product_code: str = ""
    product_name: str = ""
    quantity: float = 0.0
    batch_number: str | None = None
    expiration_date: str | None = None
    location: str | None = None
    barcode: str | None = None

    def missing_required(self) -> list[str]:
        return [
            n
            for n in ("label_id", "product_code", "product_name")
            if not getattr(self, n).strip()
        ]


StructuredRecord = Invoice | DeliveryNote | WarehouseLabel
