"""Pydantic request/response schemas for the Orders API.

These are the external contracts clients see. They are kept separate from
the Protean commands that carry the same data inside the domain.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------
class ItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)


class GuarantorSchema(BaseModel):
    required: bool = True
    full_name: str | None = None
    phone: str | None = None
    relation: str | None = None
    address: str | None = None


class PlaceOrderRequest(BaseModel):
    customer_id: str
    items: list[ItemRequest] = Field(min_length=1)
    delivery_address: str | None = None
    delivery_city: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "buyer-001",
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "delivery_address": "12 Market Street",
                    "delivery_city": "Lagos",
                }
            ]
        }
    }


class PlaceInstallmentOrderRequest(PlaceOrderRequest):
    installment_count: int = Field(ge=1)
    cadence_days: int = Field(ge=1, default=30)
    start_date: datetime | None = None
    eligibility_score: int | None = Field(default=None, ge=0, le=100)
    late_penalty_rate: float | None = Field(default=None, ge=0, le=100)
    guarantor: GuarantorSchema | None = None


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------
class StatusUpdateRequest(BaseModel):
    status: str
    reason: str | None = None


class CancelRequest(BaseModel):
    reason: str


class AddressRequest(BaseModel):
    delivery_address: str
    delivery_city: str | None = None


# ---------------------------------------------------------------------------
# Installments
# ---------------------------------------------------------------------------
class ProofRequest(BaseModel):
    payer_name: str
    transaction_code: str
    amount: float

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "payer_name": "Ada Obi",
                    "transaction_code": "0123456789",
                    "amount": 333.33,
                }
            ]
        }
    }


class ApproveRequest(BaseModel):
    approve: bool


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class OrderIdResponse(BaseModel):
    order_id: str


class StatusResponse(BaseModel):
    status: str = "ok"


class SkipWindowResponse(BaseModel):
    skipped: bool


class EligibilityResponse(BaseModel):
    customer_id: str
    eligibility_score: int
    risk_level: str


class RegisterProductRequest(BaseModel):
    product_id: str
    seller_id: str
    title: str
    unit_price: float = Field(gt=0)
    image_url: str | None = None


class ProductResponse(BaseModel):
    product_id: str
    seller_id: str
    title: str
    unit_price: float
    image_url: str | None = None


class SellerInstallmentSummaryResponse(BaseModel):
    total_installment_sales: int
    revenue_in_progress: float
    collected_amount: float
    risk_exposure: float
    overdue_orders: int
    completed_orders: int


class AuditEntryResponse(BaseModel):
    operation: str
    event_type: str
    actor_id: str
    actor_role: str
    description: str
    occurred_at: datetime
