"""
Persistance des commandes (tables 'orders' / 'order_items').

Cycle d'une tentative:
1) reserve_pending_order: ligne 'pending' (reçu, clé d'idempotence, instantané des lignes) AVANT l'appel passerelle
2a) passerelle OK -> persist_order: RPC create_order_with_items (commande 'created' + lignes, une seule transaction)
2b) passerelle KO -> release_pending_order: suppression de la ligne 'pending'
Les lignes 'pending' orphelines sont reprises par la réconciliation (service.reconcile_pending_orders).
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from postgrest.exceptions import APIError

import shop_backend.infra.supabase_client as supabase_client
from shop_backend.config import CHECKOUT_CURRENCY
from .errors import CheckoutInProgress, PersistenceError
from .models import GatewayOrder, NormalizedLineItem

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_CREATED = "created"

# Code Postgres "unique_violation"
_UNIQUE_VIOLATION = "23505"

_ORDER_COLUMNS = "id, order_code, status, receipt, idempotency_key, gateway_order_id, user_id, address_id, total_amount, currency, items_snapshot, created_at"


def derive_order_code(gateway_order_id: str) -> str:
    """
    Code commande lisible: second segment de l'identifiant passerelle, en majuscules.
    Ex: "order_AbC123" -> "ABC123", "pi_3NkQ" -> "3NKQ".
    """
    parts = (gateway_order_id or "").split("_")
    if len(parts) < 2 or not parts[1]:
        raise ValueError(f"Identifiant passerelle sans séparateur: {gateway_order_id!r}")
    return parts[1].upper()


def find_order_by_idempotency_key(idempotency_key: str) -> Optional[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select(_ORDER_COLUMNS)
            .eq("idempotency_key", idempotency_key)
            .limit(1)
            .execute()
        )
    except Exception as exc:
        logger.exception("checkout.repository.find_order_by_idempotency_key failed")
        raise PersistenceError() from exc
    rows = res.data or []
    return rows[0] if rows else None


def reserve_pending_order(
    *,
    receipt: str,
    idempotency_key: str,
    user_id: str,
    address_id: str,
    total_amount: Decimal,
    currency: str,
    items: Sequence[NormalizedLineItem],
) -> Dict[str, Any]:
    """
    Insère la commande 'pending' avant l'appel passerelle.
    - Conflit sur idempotency_key (tentative concurrente) -> CheckoutInProgress
    - Toute autre erreur -> PersistenceError (aucun appel passerelle ne suit)
    """
    row = {
        "receipt": receipt,
        "idempotency_key": idempotency_key,
        "user_id": user_id,
        "address_id": address_id,
        "total_amount": str(total_amount),
        "currency": currency,
        "status": STATUS_PENDING,
        "items_snapshot": [item.to_order_item() for item in items],
    }
    try:
        res = supabase_client.get_service_supabase().table("orders").insert(row).execute()
    except APIError as exc:
        if getattr(exc, "code", None) == _UNIQUE_VIOLATION:
            raise CheckoutInProgress() from exc
        logger.exception("checkout.repository.reserve_pending_order failed receipt=%s", receipt)
        raise PersistenceError() from exc
    except Exception as exc:
        logger.exception("checkout.repository.reserve_pending_order failed receipt=%s", receipt)
        raise PersistenceError() from exc
    rows = res.data or []
    return rows[0] if rows else row


def release_pending_order(receipt: str) -> bool:
    """Supprime la réservation d'une tentative échouée. Retourne False si la suppression a échoué."""
    try:
        (
            supabase_client.get_service_supabase()
            .table("orders")
            .delete()
            .eq("receipt", receipt)
            .eq("status", STATUS_PENDING)
            .execute()
        )
        return True
    except Exception:
        logger.exception("checkout.repository.release_pending_order failed receipt=%s", receipt)
        return False


def _create_order_with_items(params: Dict[str, Any]) -> Any:
    return supabase_client.get_service_supabase().rpc("create_order_with_items", params).execute()


def _finalize(
    *,
    order_code: str,
    gateway_order_id: str,
    amount: Any,
    user_id: str,
    address_id: str,
    items_payload: List[Dict[str, Any]],
    receipt: Optional[str],
    currency: str,
    idempotency_key: Optional[str],
) -> None:
    params = {
        "p_order_code": order_code,
        "p_gateway_order_id": gateway_order_id,
        "p_receipt": receipt,
        "p_idempotency_key": idempotency_key,
        "p_user_id": user_id,
        "p_address_id": address_id,
        "p_total_amount": str(amount),
        "p_currency": currency,
        "p_items": items_payload,
    }
    try:
        _create_order_with_items(params)
    except Exception as exc:
        logger.exception("checkout.repository.persist_order failed order_code=%s", order_code)
        raise PersistenceError() from exc


def persist_order(
    gateway_order_id: str,
    amount: Decimal,
    user_id: str,
    address_id: str,
    items: Sequence[NormalizedLineItem],
    *,
    receipt: Optional[str] = None,
    currency: str = CHECKOUT_CURRENCY,
    idempotency_key: Optional[str] = None,
) -> str:
    """
    Écrit la commande et toutes ses lignes en une transaction (RPC create_order_with_items).
    Promeut la réservation 'pending' du reçu si elle existe. Retourne le code commande.
    """
    order_code = derive_order_code(gateway_order_id)
    _finalize(
        order_code=order_code,
        gateway_order_id=gateway_order_id,
        amount=amount,
        user_id=user_id,
        address_id=address_id,
        items_payload=[item.to_order_item() for item in items],
        receipt=receipt,
        currency=currency,
        idempotency_key=idempotency_key,
    )
    return order_code


def finalize_pending_order(row: Dict[str, Any], gateway_order: GatewayOrder) -> str:
    """Réconciliation: finalise une réservation à partir de son instantané de lignes."""
    order_code = derive_order_code(gateway_order.id)
    _finalize(
        order_code=order_code,
        gateway_order_id=gateway_order.id,
        amount=row.get("total_amount"),
        user_id=row.get("user_id"),
        address_id=row.get("address_id"),
        items_payload=list(row.get("items_snapshot") or []),
        receipt=row.get("receipt"),
        currency=row.get("currency") or gateway_order.currency,
        idempotency_key=row.get("idempotency_key"),
    )
    return order_code


def list_stale_pending_orders(older_than: datetime, limit: int = 100) -> List[Dict[str, Any]]:
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("orders")
            .select(_ORDER_COLUMNS)
            .eq("status", STATUS_PENDING)
            .lt("created_at", older_than.isoformat())
            .order("created_at", desc=False)
            .limit(limit)
            .execute()
        )
    except Exception as exc:
        logger.exception("checkout.repository.list_stale_pending_orders failed")
        raise PersistenceError() from exc
    return res.data or []
