"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the domain's validation rules
(ten-digit transaction codes, reasons of at least five characters, etc.)
and match the field names expected by the API's Pydantic request schemas.
"""

import random
import uuid

from faker import Faker

fake = Faker()

SELLER_IDS = [f"seller-lt-{n:03d}" for n in range(1, 6)]


# ---------- Actors ----------


def buyer_id() -> str:
    return f"buyer-lt-{uuid.uuid4().hex[:8]}"


def buyer_headers(actor_id: str) -> dict:
    return {"X-Actor-Id": actor_id, "X-Actor-Role": "buyer"}


def seller_headers(actor_id: str) -> dict:
    return {"X-Actor-Id": actor_id, "X-Actor-Role": "seller"}


# ---------- Catalog ----------


def product_data(seller_id: str | None = None) -> dict:
    """Generate a RegisterProductRequest payload."""
    return {
        "product_id": f"prod-lt-{uuid.uuid4().hex[:8]}",
        "seller_id": seller_id or random.choice(SELLER_IDS),
        "title": fake.catch_phrase()[:100],
        "unit_price": round(random.uniform(5.0, 500.0), 2),
        "image_url": fake.image_url(),
    }


# ---------- Orders ----------


def delivery_data() -> dict:
    return {
        "delivery_address": fake.street_address()[:500],
        "delivery_city": fake.city()[:100],
    }


def order_data(customer_id: str, product_ids: list[str]) -> dict:
    """Generate a PlaceOrderRequest payload for one to three of the given products."""
    chosen = random.sample(product_ids, k=min(len(product_ids), random.randint(1, 3)))
    return {
        "customer_id": customer_id,
        "items": [{"product_id": p, "quantity": random.randint(1, 3)} for p in chosen],
        **delivery_data(),
    }


def installment_order_data(customer_id: str, product_id: str) -> dict:
    """Generate a PlaceInstallmentOrderRequest payload for a single product."""
    return {
        "customer_id": customer_id,
        "items": [{"product_id": product_id, "quantity": 1}],
        "installment_count": random.choice([2, 3, 4, 6]),
        "cadence_days": random.choice([7, 14, 30]),
        "eligibility_score": random.randint(50, 100),
        "guarantor": {
            "required": False,
            "full_name": fake.name()[:200],
            "phone": fake.msisdn()[:20],
            "relation": random.choice(["Sibling", "Parent", "Colleague"]),
        },
        **delivery_data(),
    }


def cancel_reason() -> str:
    return random.choice(
        [
            "Changed my mind",
            "Found a better price",
            "Ordered by mistake",
            "Out of stock at the warehouse",
        ]
    )


# ---------- Installment proofs ----------


def transaction_code() -> str:
    return "".join(random.choices("0123456789", k=10))


def proof_data(amount: float) -> dict:
    """Generate a ProofRequest payload for a tranche of `amount`."""
    return {
        "payer_name": fake.name()[:200],
        "transaction_code": transaction_code(),
        "amount": amount,
    }
