"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .payment_gateway import PayableIntent, PaymentEvent, PaymentEventType, PaymentGateway

__all__ = ['PayableIntent', 'PaymentEvent', 'PaymentEventType', 'PaymentGateway']
