"""Full-payment order load test scenarios.

Stateful SequentialTaskSet journeys covering the delivered happy path and
buyer cancellation inside the window, plus a polling buyer that reads its
order every five seconds the way the storefront client does.
"""

from locust import HttpUser, between, constant, task

from loadtests.data_generators import buyer_headers, buyer_id, cancel_reason, delivery_data, order_data, product_data
from loadtests.helpers.response import extract_error_detail
from loadtests.helpers.state import OrderState
from loadtests.scenarios.journey import OrderJourney


class OrderDeliveryJourney(OrderJourney):
    """Place -> Poll -> Skip Window -> Confirm -> Delivering -> Delivered -> Poll.

    The happy path: the buyer releases the cancellation window and the
    seller moves the order through to delivery.
    """

    @task
    def place_order(self):
        self.state = OrderState(customer_id=self.buyer_id, seller_id=self.seller_id)
        body = self.call(
            "POST",
            "/orders",
            "POST /orders",
            expected=201,
            json=order_data(self.buyer_id, self.product_ids),
            headers=self.buyer,
        )
        if body is None:
            self.interrupt()
            return
        self.state.order_id = body["order_id"]

    @task
    def poll_detail(self):
        self.call("GET", f"/orders/detail/{self.state.order_id}", "GET /orders/detail/{id}", headers=self.buyer)

    @task
    def skip_window(self):
        self.call(
            "POST",
            f"/orders/{self.state.order_id}/skip-cancellation-window",
            "POST /orders/{id}/skip-cancellation-window",
            headers=self.buyer,
        )

    @task
    def advance_to_delivered(self):
        for status in ("confirmed", "delivering", "delivered"):
            body = self.call(
                "PATCH",
                f"/orders/seller/{self.state.order_id}/status",
                "PATCH /orders/seller/{id}/status",
                json={"status": status},
                headers=self.seller,
            )
            if body is None:
                self.interrupt()
                return
            self.state.current_status = status

    @task
    def poll_seller_detail(self):
        self.call(
            "GET",
            f"/orders/seller/detail/{self.state.order_id}",
            "GET /orders/seller/detail/{id}",
            headers=self.seller,
        )

    @task
    def done(self):
        self.interrupt()


class OrderCancellationJourney(OrderJourney):
    """Place -> Change Address -> Cancel inside the window -> Read Audit Trail."""

    @task
    def place_order(self):
        self.state = OrderState(customer_id=self.buyer_id, seller_id=self.seller_id)
        body = self.call(
            "POST",
            "/orders",
            "POST /orders",
            expected=201,
            json=order_data(self.buyer_id, self.product_ids),
            headers=self.buyer,
        )
        if body is None:
            self.interrupt()
            return
        self.state.order_id = body["order_id"]

    @task
    def change_address(self):
        self.call(
            "PATCH",
            f"/orders/{self.state.order_id}/address",
            "PATCH /orders/{id}/address",
            json=delivery_data(),
            headers=self.buyer,
        )

    @task
    def cancel(self):
        body = self.call(
            "PATCH",
            f"/orders/{self.state.order_id}/status",
            "PATCH /orders/{id}/status",
            json={"status": "cancelled", "reason": cancel_reason()},
            headers=self.buyer,
        )
        if body is not None:
            self.state.current_status = "cancelled"

    @task
    def read_audit_trail(self):
        self.call("GET", f"/orders/{self.state.order_id}/audit", "GET /orders/{id}/audit", headers=self.buyer)

    @task
    def done(self):
        self.interrupt()


class PollingBuyerUser(HttpUser):
    """A buyer with one open order, re-reading it every five seconds.

    Reads never take the order lock, so this user measures read latency
    while writers work on other orders.
    """

    wait_time = constant(5)

    def on_start(self):
        self.buyer_id = buyer_id()
        self.headers = buyer_headers(self.buyer_id)
        self.order_id = None

        product = product_data()
        self.client.post("/orders/catalog/products", json=product, name="POST /orders/catalog/products")
        with self.client.post(
            "/orders",
            json=order_data(self.buyer_id, [product["product_id"]]),
            headers=self.headers,
            catch_response=True,
            name="POST /orders",
        ) as resp:
            if resp.status_code == 201:
                self.order_id = resp.json()["order_id"]
            else:
                resp.failure(f"Place order failed: {resp.status_code} - {extract_error_detail(resp)}")

    @task
    def poll(self):
        if self.order_id is None:
            return
        self.client.get(f"/orders/detail/{self.order_id}", headers=self.headers, name="GET /orders/detail/{id}")


class OrderLifecycleUser(HttpUser):
    """Runs the full-payment journeys on their own."""

    wait_time = between(0.5, 2.0)
    tasks = {
        OrderDeliveryJourney: 3,
        OrderCancellationJourney: 1,
    }
