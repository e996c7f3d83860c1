"""Mixed marketplace workload scenario.

Combines the full-payment and installment journeys with weights that model
a storefront where most checkouts are paid up front. This is the
recommended scenario for load baseline testing.
"""

from locust import HttpUser, between

from loadtests.scenarios.installments import InstallmentPaymentJourney
from loadtests.scenarios.orders import OrderCancellationJourney, OrderDeliveryJourney


class MixedWorkloadUser(HttpUser):
    """Realistic mixed workload simulating concurrent marketplace activity.

    Full payment (70%):
    - Delivery happy path: most common
    - Cancellation inside the window: unhappy path

    Installments (30%):
    - Sale confirmation, proofs and validation through to completion
    """

    wait_time = between(0.5, 3.0)
    tasks = {
        OrderDeliveryJourney: 50,
        OrderCancellationJourney: 20,
        InstallmentPaymentJourney: 30,
    }
