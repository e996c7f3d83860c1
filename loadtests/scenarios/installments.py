"""Installment order load test scenarios.

The payment journey walks one plan from checkout to completion: the seller
confirms the sale, then each tranche gets a proof from the buyer and a
validation from the seller. Validation and the penalty sweep contend for
the same per-order lock, so this is the scenario to watch for retries.
"""

import random

from locust import HttpUser, between, constant, task

from loadtests.data_generators import installment_order_data, proof_data
from loadtests.helpers.state import InstallmentState
from loadtests.scenarios.journey import OrderJourney


class InstallmentPaymentJourney(OrderJourney):
    """Place -> Skip Window -> Confirm Sale -> (Proof -> Validate) per tranche -> Summary."""

    products_per_seller = 1

    @task
    def place_installment_order(self):
        self.state = InstallmentState(customer_id=self.buyer_id, seller_id=self.seller_id)
        body = self.call(
            "POST",
            "/orders/installment",
            "POST /orders/installment",
            expected=201,
            json=installment_order_data(self.buyer_id, self.product_ids[0]),
            headers=self.buyer,
        )
        if body is None:
            self.interrupt()
            return
        self.state.order_id = body["order_id"]

    @task
    def skip_window(self):
        self.call(
            "POST",
            f"/orders/{self.state.order_id}/skip-cancellation-window",
            "POST /orders/{id}/skip-cancellation-window",
            headers=self.buyer,
        )

    @task
    def confirm_sale(self):
        body = self.call(
            "PATCH",
            f"/orders/seller/{self.state.order_id}/installment/confirm-sale",
            "PATCH /orders/seller/{id}/installment/confirm-sale",
            json={"approve": True},
            headers=self.seller,
        )
        if body is None:
            self.interrupt()

    @task
    def read_schedule(self):
        detail = self.call(
            "GET",
            f"/orders/detail/{self.state.order_id}",
            "GET /orders/detail/{id}",
            headers=self.buyer,
        )
        if detail is None or detail.get("installment_plan") is None:
            self.interrupt()
            return
        self.state.tranche_amounts = [e["amount"] for e in detail["installment_plan"]["schedule"]]

    @task
    def pay_every_tranche(self):
        for index, amount in enumerate(self.state.tranche_amounts):
            proof = self.call(
                "POST",
                f"/orders/{self.state.order_id}/installment/payments/{index}/proof",
                "POST /orders/{id}/installment/payments/{index}/proof",
                json=proof_data(amount),
                headers=self.buyer,
            )
            if proof is None:
                return
            # Sellers occasionally bounce a proof before accepting a resubmission
            if random.random() < 0.1:
                self.call(
                    "PATCH",
                    f"/orders/seller/{self.state.order_id}/installment/payments/{index}/validate",
                    "PATCH /orders/seller/{id}/installment/payments/{index}/validate",
                    json={"approve": False},
                    headers=self.seller,
                )
                self.call(
                    "POST",
                    f"/orders/{self.state.order_id}/installment/payments/{index}/proof",
                    "POST /orders/{id}/installment/payments/{index}/proof",
                    json=proof_data(amount),
                    headers=self.buyer,
                )
            validated = self.call(
                "PATCH",
                f"/orders/seller/{self.state.order_id}/installment/payments/{index}/validate",
                "PATCH /orders/seller/{id}/installment/payments/{index}/validate",
                json={"approve": True},
                headers=self.seller,
            )
            if validated is None:
                return
            self.state.next_index = index + 1

    @task
    def seller_summary(self):
        self.call(
            "GET",
            "/orders/seller/installments/summary",
            "GET /orders/seller/installments/summary",
            headers=self.seller,
        )

    @task
    def done(self):
        self.interrupt()


class SellerDashboardUser(HttpUser):
    """A seller refreshing the installment analytics dashboard."""

    wait_time = constant(5)

    def on_start(self):
        self.seller_id = f"seller-lt-{random.randint(1, 5):03d}"

    @task
    def refresh(self):
        self.client.get(
            "/orders/seller/installments/summary",
            headers={"X-Actor-Id": self.seller_id, "X-Actor-Role": "seller"},
            name="GET /orders/seller/installments/summary",
        )


class InstallmentUser(HttpUser):
    """Runs the installment payment journey on its own."""

    wait_time = between(0.5, 2.0)
    tasks = [InstallmentPaymentJourney]
