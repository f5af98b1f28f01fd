"""
Agrégation du total et conversion en unités mineures (centimes/paise).
Le total reste un Decimal exact; l'arrondi n'intervient qu'à la frontière passerelle.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from .models import NormalizedLineItem

_MINOR_FACTOR = Decimal(100)


def aggregate_total(items: Iterable[NormalizedLineItem]) -> Decimal:
    """Somme des prix de ligne remisés (offer), indépendante de l'ordre."""
    return sum((item.line_offer_price for item in items), Decimal("0"))


def to_minor_units(amount: Decimal) -> int:
    """round(amount x 100), demi vers le haut."""
    return int((Decimal(amount) * _MINOR_FACTOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(minor: int) -> Decimal:
    return Decimal(int(minor)) / _MINOR_FACTOR
