"""
Normalisation des lignes: source brute (intention ou panier) -> NormalizedLineItem tarifées.

Règles:
- produit personnalisé: prix unitaires issus de l'instantané, quantité 0 ramenée à 1,
  instantané toujours renseigné (titre/image par défaut, options vides)
- produit catalogue: prix relus dans le catalogue au moment de la normalisation
  (jamais depuis un prix mis en cache), ProductNotFound si absent
- l'ordre d'entrée est conservé, aucune fusion de lignes
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from shop_backend.catalog import repository as catalog_repository
from .errors import ProductNotFound
from .models import (
    DEFAULT_CUSTOM_IMAGE,
    DEFAULT_CUSTOM_TITLE,
    CartCheckout,
    CartItem,
    CatalogIntent,
    CatalogSource,
    CustomIntent,
    CustomProductSnapshot,
    CustomSource,
    DirectCheckout,
    NormalizedLineItem,
)

_ZERO = Decimal("0")


def _coerce_quantity(quantity: int) -> int:
    return quantity if quantity > 0 else 1


def _price(value: Any) -> Decimal:
    if value is None or value == "":
        return _ZERO
    return Decimal(str(value))


def intent_source(intent: Union[CatalogIntent, CustomIntent]) -> Union[CatalogSource, CustomSource]:
    if isinstance(intent, CustomIntent):
        snapshot = intent.custom_product or CustomProductSnapshot(
            title=intent.title or DEFAULT_CUSTOM_TITLE,
            image=intent.image or DEFAULT_CUSTOM_IMAGE,
        )
        return CustomSource(
            snapshot=snapshot,
            unit_base_price=intent.base_price,
            unit_offer_price=intent.offer_price,
            quantity=intent.quantity,
            color=intent.color,
        )
    return CatalogSource(product_id=intent.product_id, quantity=intent.quantity, color=intent.color)


def cart_item_source(item: CartItem) -> Union[CatalogSource, CustomSource]:
    if item.custom_product is not None:
        snapshot = item.custom_product
        return CustomSource(
            snapshot=snapshot,
            unit_base_price=snapshot.base_price or _ZERO,
            unit_offer_price=snapshot.offer_price or _ZERO,
            quantity=item.quantity,
            color=item.color,
        )
    return CatalogSource(product_id=item.product_id, quantity=item.quantity, color=item.color)


def normalize_line(source: Union[CatalogSource, CustomSource]) -> NormalizedLineItem:
    quantity = _coerce_quantity(source.quantity)
    if isinstance(source, CustomSource):
        return NormalizedLineItem(
            source_kind="custom",
            product_id=None,
            quantity=quantity,
            unit_base_price=source.unit_base_price,
            unit_offer_price=source.unit_offer_price,
            color=source.color,
            custom_snapshot=source.snapshot.as_json(),
        )
    if isinstance(source, CatalogSource):
        product: Optional[Dict[str, Any]] = catalog_repository.get_product_with_images(source.product_id)
        if not product:
            raise ProductNotFound()
        return NormalizedLineItem(
            source_kind="catalog",
            product_id=str(product.get("id") or source.product_id),
            quantity=quantity,
            unit_base_price=_price(product.get("base_price")),
            unit_offer_price=_price(product.get("offer_price")),
            color=source.color,
        )
    raise TypeError(f"Source de ligne inconnue: {type(source).__name__}")


def normalize_intent(intent: Union[CatalogIntent, CustomIntent]) -> List[NormalizedLineItem]:
    return [normalize_line(intent_source(intent))]


def normalize_cart_items(items: List[CartItem]) -> List[NormalizedLineItem]:
    return [normalize_line(cart_item_source(item)) for item in items]


def normalize_source(source: Union[DirectCheckout, CartCheckout]) -> List[NormalizedLineItem]:
    """Point d'entrée: une ligne pour une intention directe, une par ligne de panier sinon."""
    if isinstance(source, DirectCheckout):
        return normalize_intent(source.intent)
    return normalize_cart_items(source.items)
