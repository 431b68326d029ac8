# Role: Shared singletons for the API layer (one payment repository and one orchestrator per process).
# Conversation state is round-tripped by the client, so the controller holds no per-session data.

from renewal.core.flow_controller import FlowController
from renewal.core.payment_store import InMemoryPaymentRepository, PaymentRepository

payment_repository = InMemoryPaymentRepository()
flow_controller = FlowController(payments=payment_repository)


def get_flow_controller() -> FlowController:
    return flow_controller


def get_payment_repository() -> PaymentRepository:
    return payment_repository
