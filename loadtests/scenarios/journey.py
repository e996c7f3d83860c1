"""Shared plumbing for order journeys: catalog seeding and request wrappers."""

import random

from locust import SequentialTaskSet

from loadtests.data_generators import SELLER_IDS, buyer_headers, buyer_id, product_data, seller_headers
from loadtests.helpers.response import extract_error_detail


class OrderJourney(SequentialTaskSet):
    """Base journey: one buyer, one seller, a few freshly listed products."""

    products_per_seller = 2

    def on_start(self):
        self.buyer_id = buyer_id()
        self.seller_id = random.choice(SELLER_IDS)
        self.buyer = buyer_headers(self.buyer_id)
        self.seller = seller_headers(self.seller_id)
        self.product_ids = []
        for _ in range(self.products_per_seller):
            payload = product_data(self.seller_id)
            with self.client.post(
                "/orders/catalog/products",
                json=payload,
                catch_response=True,
                name="POST /orders/catalog/products",
            ) as resp:
                if resp.status_code == 201:
                    self.product_ids.append(payload["product_id"])
                else:
                    resp.failure(f"Register product failed: {resp.status_code} - {extract_error_detail(resp)}")
        if not self.product_ids:
            self.interrupt()

    def call(self, method: str, path: str, name: str, expected: int = 200, **kwargs):
        """Issue one request, marking it failed unless it answers `expected`."""
        with self.client.request(method, path, catch_response=True, name=name, **kwargs) as resp:
            if resp.status_code != expected:
                resp.failure(f"{name} failed: {resp.status_code} - {extract_error_detail(resp)}")
                return None
            return resp.json()
