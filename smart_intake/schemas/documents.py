"""
Data models for document-extracted context.

The extractor itself lives outside this package; these models are the
shape it hands back.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from smart_intake.schemas.fields import RequirementField

MAPPING_DATE_FORMAT = "%m/%d/%Y"


class VendorInfo(BaseModel):
    name: Optional[str] = None
    uei: Optional[str] = None
    cage: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class LineItem(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    description: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class PricingInfo(BaseModel):
    total_price: Optional[Decimal] = None
    unit_prices: list[LineItem] = Field(default_factory=list)
    currency: str = "USD"


class ExtractedDates(BaseModel):
    quote_date: Optional[date] = None
    valid_until: Optional[date] = None
    delivery_date: Optional[date] = None


class DocumentReference(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    file_name: str = ""
    document_type: str = ""


class ParsedDocument(BaseModel):
    """A document already parsed by the upload pipeline."""
    id: UUID = Field(default_factory=uuid4)
    file_name: str
    document_type: str = "unknown"
    text: str = ""


class ExtractedContext(BaseModel):
    """Structured facts pulled out of uploaded documents."""
    vendor_info: Optional[VendorInfo] = None
    pricing: Optional[PricingInfo] = None
    technical_details: list[str] = Field(default_factory=list)
    dates: Optional[ExtractedDates] = None
    special_terms: list[str] = Field(default_factory=list)
    confidence: dict[RequirementField, float] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.to_field_mapping()

    def to_field_mapping(self) -> dict[str, str]:
        """Flatten into the key -> string map providers read from."""
        mapping: dict[str, str] = {}

        if self.vendor_info:
            vendor_keys = {
                "vendorName": self.vendor_info.name,
                "vendorUEI": self.vendor_info.uei,
                "vendorCAGE": self.vendor_info.cage,
                "vendorEmail": self.vendor_info.email,
                "vendorPhone": self.vendor_info.phone,
                "vendorAddress": self.vendor_info.address,
            }
            mapping.update({k: v for k, v in vendor_keys.items() if v})

        if self.pricing and self.pricing.total_price is not None:
            mapping["estimatedValue"] = str(self.pricing.total_price)

        if self.dates:
            if self.dates.quote_date:
                mapping["quoteDate"] = self.dates.quote_date.strftime(MAPPING_DATE_FORMAT)
            if self.dates.valid_until:
                mapping["validUntil"] = self.dates.valid_until.strftime(MAPPING_DATE_FORMAT)
            if self.dates.delivery_date:
                delivery = self.dates.delivery_date.strftime(MAPPING_DATE_FORMAT)
                mapping["deliveryDate"] = delivery
                mapping["requiredDate"] = delivery

        if self.technical_details:
            mapping["technicalSpecs"] = "; ".join(self.technical_details)

        if self.special_terms:
            mapping["specialConditions"] = "; ".join(self.special_terms)

        return mapping
