"""
Payment gateway interface.

The engine needs two things from a gateway: create a payable intent for a
booking, and turn a signed inbound notification into a verified event.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class PayableIntent:
    id: str
    redirect_url: str


class PaymentEventType(str, Enum):
    COMPLETED = "completed"
    EXPIRED = "expired"
    OTHER = "other"


@dataclass(frozen=True)
class PaymentEvent:
    id: str
    type: PaymentEventType
    reference: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)
    raw_type: str = ""


class PaymentGateway(ABC):
    """
    Interface for payment gateways.

    Implementations:
    - StripePaymentGateway: Stripe Checkout sessions and signed webhooks
    """

    @abstractmethod
    async def create_payable_intent(
        self,
        amount_cents: int,
        currency: str,
        metadata: dict[str, str],
        description: str,
        customer_email: Optional[str] = None,
    ) -> PayableIntent:
        """
        Create a payment the customer is redirected to.

        Raises:
            PaymentGatewayError: The gateway rejected or failed the request
        """
        pass

    @abstractmethod
    def parse_event(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        """
        Verify the signature of an inbound notification and decode it.

        Raises:
            SignatureInvalid: Signature missing, malformed or not matching
        """
        pass
