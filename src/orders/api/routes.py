"""FastAPI routes for the Orders domain.

The caller is identified by the ``X-Actor-Id`` header and acts in the role
given by ``X-Actor-Role``. Buyer routes default the role to ``buyer`` and
``/orders/seller/...`` routes default it to ``seller``.
"""

import json
import os

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from orders.api.schemas import (
    AddressRequest,
    ApproveRequest,
    AuditEntryResponse,
    CancelRequest,
    EligibilityResponse,
    OrderIdResponse,
    PlaceInstallmentOrderRequest,
    PlaceOrderRequest,
    ProductResponse,
    ProofRequest,
    RegisterProductRequest,
    SellerInstallmentSummaryResponse,
    SkipWindowResponse,
    StatusResponse,
    StatusUpdateRequest,
)
from orders.catalog import get_catalog
from orders.catalog.fake_adapter import FakeCatalog
from orders.errors import NotBuyerOwned, OrderError, Unauthorized
from orders.order.actors import Actor, ActorRole
from orders.order.dispatch import dispatch, dispatch_new
from orders.order.installments import ConfirmSale, SubmitProof, ValidateProof, WaiveInstallment
from orders.order.placement import PlaceInstallmentOrder, PlaceOrder
from orders.order.queries import (
    buyer_order_detail,
    installment_eligibility,
    load_order,
    seller_installment_summary,
    seller_order_detail,
)
from orders.order.transitions import (
    CancelOrder,
    ChangeDeliveryAddress,
    RequestTransition,
    SkipCancellationWindow,
)
from orders.projections.audit_log import audit_trail

router = APIRouter(prefix="/orders", tags=["orders"])


# ---------------------------------------------------------------------------
# Actor resolution
# ---------------------------------------------------------------------------
def _resolve_actor(actor_id: str, role: str) -> Actor:
    try:
        return Actor.of(actor_id, role)
    except ValueError as exc:
        raise Unauthorized(f"Unknown actor role '{role}'") from exc


def buyer_actor(
    x_actor_id: str = Header(),
    x_actor_role: str = Header(default=ActorRole.BUYER.value),
) -> Actor:
    return _resolve_actor(x_actor_id, x_actor_role)


def seller_actor(
    x_actor_id: str = Header(),
    x_actor_role: str = Header(default=ActorRole.SELLER.value),
) -> Actor:
    actor = _resolve_actor(x_actor_id, x_actor_role)
    if actor.is_buyer:
        raise Unauthorized("Buyers cannot use seller routes")
    return actor


def _actor_fields(actor: Actor) -> dict:
    return {"actor_id": actor.id, "actor_role": actor.role.value}


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------
@router.post("", status_code=201, response_model=OrderIdResponse)
async def place_order(body: PlaceOrderRequest, actor: Actor = Depends(buyer_actor)) -> OrderIdResponse:
    command = PlaceOrder(
        customer_id=body.customer_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        delivery_address=body.delivery_address,
        delivery_city=body.delivery_city,
        **_actor_fields(actor),
    )
    return OrderIdResponse(order_id=dispatch_new(command))


@router.post("/installment", status_code=201, response_model=OrderIdResponse)
async def place_installment_order(
    body: PlaceInstallmentOrderRequest, actor: Actor = Depends(buyer_actor)
) -> OrderIdResponse:
    command = PlaceInstallmentOrder(
        customer_id=body.customer_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        installment_count=body.installment_count,
        cadence_days=body.cadence_days,
        start_date=body.start_date,
        eligibility_score=body.eligibility_score,
        late_penalty_rate=body.late_penalty_rate,
        guarantor=json.dumps(body.guarantor.model_dump()) if body.guarantor else None,
        delivery_address=body.delivery_address,
        delivery_city=body.delivery_city,
        **_actor_fields(actor),
    )
    return OrderIdResponse(order_id=dispatch_new(command))


# ---------------------------------------------------------------------------
# Fixed read paths
# ---------------------------------------------------------------------------
@router.get("/installment/eligibility", response_model=EligibilityResponse)
async def get_installment_eligibility(
    customer_id: str | None = None, actor: Actor = Depends(buyer_actor)
) -> EligibilityResponse:
    customer_id = customer_id or actor.id
    if not actor.is_admin and customer_id != actor.id:
        raise NotBuyerOwned("Buyers may only check their own eligibility")
    assessment = installment_eligibility(customer_id)
    return EligibilityResponse(
        customer_id=customer_id,
        eligibility_score=assessment.eligibility_score,
        risk_level=assessment.risk_level,
    )


@router.get("/seller/installments/summary", response_model=SellerInstallmentSummaryResponse)
async def get_seller_installment_summary(
    seller_id: str | None = None, actor: Actor = Depends(seller_actor)
) -> SellerInstallmentSummaryResponse:
    seller_id = seller_id or actor.id
    if not actor.is_admin and seller_id != actor.id:
        raise Unauthorized("Sellers may only read their own analytics")
    return SellerInstallmentSummaryResponse(**seller_installment_summary(seller_id))


@router.get("/detail/{order_id}")
async def get_buyer_order(order_id: str, actor: Actor = Depends(buyer_actor)) -> dict:
    return buyer_order_detail(order_id, actor)


@router.get("/seller/detail/{order_id}")
async def get_seller_order(order_id: str, actor: Actor = Depends(seller_actor)) -> dict:
    return seller_order_detail(order_id, actor)


# ---------------------------------------------------------------------------
# Buyer lifecycle
# ---------------------------------------------------------------------------
@router.patch("/{order_id}/status", response_model=StatusResponse)
async def update_status_as_buyer(
    order_id: str, body: StatusUpdateRequest, actor: Actor = Depends(buyer_actor)
) -> StatusResponse:
    command = RequestTransition(
        order_id=order_id,
        target_status=body.status,
        reason=body.reason,
        **_actor_fields(actor),
    )
    dispatch(command)
    return StatusResponse()


@router.post("/{order_id}/skip-cancellation-window", response_model=SkipWindowResponse)
async def skip_cancellation_window(order_id: str, actor: Actor = Depends(buyer_actor)) -> SkipWindowResponse:
    skipped = dispatch(SkipCancellationWindow(order_id=order_id, **_actor_fields(actor)))
    return SkipWindowResponse(skipped=bool(skipped))


@router.patch("/{order_id}/address", response_model=StatusResponse)
async def change_delivery_address(
    order_id: str, body: AddressRequest, actor: Actor = Depends(buyer_actor)
) -> StatusResponse:
    command = ChangeDeliveryAddress(
        order_id=order_id,
        delivery_address=body.delivery_address,
        delivery_city=body.delivery_city,
        **_actor_fields(actor),
    )
    dispatch(command)
    return StatusResponse()


@router.post("/{order_id}/installment/payments/{index}/proof", response_model=StatusResponse)
async def submit_proof(
    order_id: str, index: int, body: ProofRequest, actor: Actor = Depends(buyer_actor)
) -> StatusResponse:
    command = SubmitProof(
        order_id=order_id,
        schedule_index=index,
        payer_name=body.payer_name,
        transaction_code=body.transaction_code,
        amount=body.amount,
        **_actor_fields(actor),
    )
    dispatch(command)
    return StatusResponse()


@router.get("/{order_id}/audit", response_model=list[AuditEntryResponse])
async def get_audit_trail(order_id: str, actor: Actor = Depends(buyer_actor)) -> list[AuditEntryResponse]:
    order = load_order(order_id)
    is_party = (actor.is_buyer and actor.id == str(order.customer_id)) or (
        actor.is_seller and actor.id in order.seller_id_list
    )
    if not (actor.is_admin or is_party):
        raise Unauthorized("Only the parties to an order may read its audit trail")
    return [
        AuditEntryResponse(
            operation=entry.operation,
            event_type=entry.event_type,
            actor_id=entry.actor_id,
            actor_role=entry.actor_role,
            description=entry.description,
            occurred_at=entry.occurred_at,
        )
        for entry in audit_trail(order_id)
    ]


# ---------------------------------------------------------------------------
# Seller lifecycle
# ---------------------------------------------------------------------------
@router.patch("/seller/{order_id}/status", response_model=StatusResponse)
async def update_status_as_seller(
    order_id: str, body: StatusUpdateRequest, actor: Actor = Depends(seller_actor)
) -> StatusResponse:
    command = RequestTransition(
        order_id=order_id,
        target_status=body.status,
        reason=body.reason,
        **_actor_fields(actor),
    )
    dispatch(command)
    return StatusResponse()


@router.post("/seller/{order_id}/cancel", response_model=StatusResponse)
async def cancel_as_seller(order_id: str, body: CancelRequest, actor: Actor = Depends(seller_actor)) -> StatusResponse:
    dispatch(CancelOrder(order_id=order_id, reason=body.reason, **_actor_fields(actor)))
    return StatusResponse()


@router.patch("/seller/{order_id}/installment/confirm-sale", response_model=StatusResponse)
async def confirm_sale(order_id: str, body: ApproveRequest, actor: Actor = Depends(seller_actor)) -> StatusResponse:
    dispatch(ConfirmSale(order_id=order_id, approve=body.approve, **_actor_fields(actor)))
    return StatusResponse()


@router.patch("/seller/{order_id}/installment/payments/{index}/validate", response_model=StatusResponse)
async def validate_proof(
    order_id: str, index: int, body: ApproveRequest, actor: Actor = Depends(seller_actor)
) -> StatusResponse:
    command = ValidateProof(
        order_id=order_id,
        schedule_index=index,
        approve=body.approve,
        **_actor_fields(actor),
    )
    dispatch(command)
    return StatusResponse()


@router.patch("/seller/{order_id}/installment/payments/{index}/waive", response_model=StatusResponse)
async def waive_installment(order_id: str, index: int, actor: Actor = Depends(seller_actor)) -> StatusResponse:
    dispatch(WaiveInstallment(order_id=order_id, schedule_index=index, **_actor_fields(actor)))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Development catalog
# ---------------------------------------------------------------------------
@router.post("/catalog/products", status_code=201, response_model=ProductResponse)
async def register_product(body: RegisterProductRequest) -> ProductResponse:
    """List a product on the FakeCatalog (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Catalog registration not available in production")

    catalog = get_catalog()
    if not isinstance(catalog, FakeCatalog):
        raise HTTPException(status_code=400, detail="Catalog registration only available for FakeCatalog")

    snapshot = catalog.register(
        product_id=body.product_id,
        seller_id=body.seller_id,
        title=body.title,
        unit_price=body.unit_price,
        image_url=body.image_url,
    )
    return ProductResponse(
        product_id=snapshot.product_id,
        seller_id=snapshot.seller_id,
        title=snapshot.title,
        unit_price=snapshot.unit_price,
        image_url=snapshot.image_url,
    )


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
async def _order_error_handler(request: Request, exc: OrderError) -> JSONResponse:
    return JSONResponse(status_code=exc.http_status, content={"error": exc.messages, "kind": exc.kind})


def register_order_error_handlers(app: FastAPI) -> None:
    """Answer domain failures with their own status and kind."""
    app.add_exception_handler(OrderError, _order_error_handler)
