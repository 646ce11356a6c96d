"""
Adaptateur Razorpay: centralise les appels et la configuration de la passerelle.
- Toute erreur du provider (HTTP, timeout, réseau) est traduite en GatewayUnavailableError.
- Les signatures (checkout et webhook) sont vérifiées par razorpay.Utility.
"""
import logging
from typing import Any, Dict, Optional

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError, ServerError, SignatureVerificationError

from storefront import config
from storefront.errors import GatewayUnavailableError

logger = logging.getLogger(__name__)

_client: Optional[razorpay.Client] = None

# module storefront.payments.razorpay_client
def require_razorpay() -> razorpay.Client:
    """
    Retourne le client Razorpay partagé (créé au premier appel).
    - Sans clés configurées, lève GatewayUnavailableError (jamais d'appel anonyme).
    """
    global _client
    if not config.RAZORPAY_KEY_ID or not config.RAZORPAY_KEY_SECRET:
        raise GatewayUnavailableError("Razorpay credentials are not configured")
    if _client is None:
        _client = razorpay.Client(auth=(config.RAZORPAY_KEY_ID, config.RAZORPAY_KEY_SECRET))
    return _client

def reset_razorpay_client() -> None:
    global _client
    _client = None

def get_key_id() -> str:
    """Clé publique transmise au widget de checkout côté client."""
    return config.RAZORPAY_KEY_ID

def _call(action: str, fn, **kwargs) -> Dict[str, Any]:
    try:
        return dict(fn(timeout=config.GATEWAY_TIMEOUT_SECONDS, **kwargs))
    except requests.exceptions.Timeout as e:
        logger.warning("razorpay.%s timed out after %ss", action, config.GATEWAY_TIMEOUT_SECONDS)
        raise GatewayUnavailableError("Payment gateway timed out, please retry") from e
    except requests.exceptions.RequestException as e:
        logger.warning("razorpay.%s network error: %s", action, e)
        raise GatewayUnavailableError("Payment gateway is unreachable, please retry") from e
    except (BadRequestError, GatewayError, ServerError) as e:
        logger.error("razorpay.%s rejected: %s", action, e)
        raise GatewayUnavailableError(f"Payment gateway error: {e}") from e

def create_order(*, amount: int, currency: str, receipt: str, notes: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Crée un order Razorpay.
    - amount: entier en unités mineures (paise), toujours lu depuis la commande côté serveur
    - receipt: orderId lisible (max 40 caractères côté Razorpay)
    Retour: dict order (ex: {"id": "order_...", "amount": 1100, "currency": "INR", ...})
    """
    client = require_razorpay()
    data = {"amount": int(amount), "currency": currency, "receipt": receipt[:40], "notes": notes or {}}
    order = _call("order.create", client.order.create, data=data)
    logger.info("razorpay.order.create ok id=%s receipt=%s amount=%s", order.get("id"), receipt, amount)
    return order

def create_subscription(*, plan_id: str, notes: Optional[Dict[str, str]] = None, total_count: int = 12) -> Dict[str, Any]:
    """Crée une subscription Razorpay pour un plan existant (contexte récurrent)."""
    client = require_razorpay()
    data = {"plan_id": plan_id, "total_count": total_count, "customer_notify": 1, "notes": notes or {}}
    sub = _call("subscription.create", client.subscription.create, data=data)
    logger.info("razorpay.subscription.create ok id=%s plan_id=%s", sub.get("id"), plan_id)
    return sub

def verify_payment_signature(handle_id: str, payment_id: str, signature: str, *, subscription: bool = False) -> bool:
    """
    Vérifie la signature renvoyée par le widget via l'utilitaire du SDK:
    - order:        razorpay_order_id|razorpay_payment_id
    - subscription: razorpay_payment_id|razorpay_subscription_id
    """
    if not handle_id or not payment_id or not signature:
        return False
    utility = require_razorpay().utility
    try:
        if subscription:
            return bool(utility.verify_subscription_payment_signature({
                "razorpay_subscription_id": handle_id,
                "razorpay_payment_id": payment_id,
                "razorpay_signature": str(signature),
            }))
        return bool(utility.verify_payment_signature({
            "razorpay_order_id": handle_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": str(signature),
        }))
    except SignatureVerificationError:
        return False

def verify_webhook_signature(raw_body: bytes, signature: str) -> bool:
    """Le corps brut doit être utilisé, jamais le JSON re-sérialisé."""
    if not config.RAZORPAY_WEBHOOK_SECRET or not signature:
        return False
    try:
        body = (raw_body or b"").decode("utf-8")
    except UnicodeDecodeError:
        return False
    try:
        return bool(require_razorpay().utility.verify_webhook_signature(body, str(signature), config.RAZORPAY_WEBHOOK_SECRET))
    except SignatureVerificationError:
        return False
