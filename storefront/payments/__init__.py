"""
Module 'payments' (feature-first): point d'entrée public.
Réunit le client Razorpay (commandes, abonnements, signatures) et les cas d'usage
initiation / vérification / webhook.
"""

from .razorpay_client import (
    require_razorpay,
    create_order,
    create_subscription,
    verify_payment_signature,
    verify_webhook_signature,
)
from .service import initiate_payment, verify_payment, handle_webhook

__all__ = [
    # razorpay
    "require_razorpay",
    "create_order",
    "create_subscription",
    "verify_payment_signature",
    "verify_webhook_signature",
    # services
    "initiate_payment",
    "verify_payment",
    "handle_webhook",
]
