"""
Schémas pydantic du tunnel de paiement.

- CheckoutIntent: intention « acheter maintenant » portée par le cookie (v2, union discriminée sur `kind`)
- CartItem: ligne du panier persistant (produit catalogue OU produit personnalisé)
- LineItemSource: origine d'une ligne avant tarification (catalogue / personnalisé)
- NormalizedLineItem: ligne tarifée, quantité >= 1, prix de ligne = unitaire x quantité
- DirectCheckout / CartCheckout: source résolue du checkout
- GatewayOrder: transaction enregistrée auprès de la passerelle (montant en unités mineures)
"""
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_CUSTOM_TITLE = "Custom Product"
DEFAULT_CUSTOM_IMAGE = "/placeholder.svg"


class CustomProductSnapshot(BaseModel):
    """Instantané d'un produit personnalisé; les champs inconnus sont conservés tels quels."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    title: str = DEFAULT_CUSTOM_TITLE
    image: str = DEFAULT_CUSTOM_IMAGE
    options: Dict[str, Any] = Field(default_factory=dict)
    base_price: Optional[Decimal] = Field(default=None, alias="basePrice", ge=0)
    offer_price: Optional[Decimal] = Field(default=None, alias="offerPrice", ge=0)

    def as_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Intention de checkout (cookie) ---

class CatalogIntent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    v: Literal[2] = 2
    kind: Literal["catalog"]
    product_id: str = Field(alias="productId", min_length=1)
    quantity: int = Field(default=1, ge=0)
    color: Optional[str] = None


class CustomIntent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    v: Literal[2] = 2
    kind: Literal["custom"]
    quantity: int = Field(default=1, ge=0)
    base_price: Decimal = Field(default=Decimal("0"), alias="basePrice", ge=0)
    offer_price: Decimal = Field(default=Decimal("0"), alias="offerPrice", ge=0)
    title: Optional[str] = None
    image: Optional[str] = None
    color: Optional[str] = None
    custom_product: Optional[CustomProductSnapshot] = Field(default=None, alias="customProductData")


CheckoutIntent = Annotated[Union[CatalogIntent, CustomIntent], Field(discriminator="kind")]


# --- Panier persistant ---

class CartItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    id: str
    cart_id: Optional[str] = None
    product_id: Optional[str] = None
    quantity: int = Field(default=1, ge=0)
    color: Optional[str] = None
    custom_product: Optional[CustomProductSnapshot] = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "CartItem":
        if (self.product_id is None) == (self.custom_product is None):
            raise ValueError("Une ligne de panier référence soit un produit, soit un produit personnalisé")
        return self


# --- Sources de lignes (union étiquetée) ---

class CatalogSource(BaseModel):
    kind: Literal["catalog"] = "catalog"
    product_id: str
    quantity: int
    color: Optional[str] = None


class CustomSource(BaseModel):
    kind: Literal["custom"] = "custom"
    snapshot: CustomProductSnapshot
    unit_base_price: Decimal
    unit_offer_price: Decimal
    quantity: int
    color: Optional[str] = None


LineItemSource = Annotated[Union[CatalogSource, CustomSource], Field(discriminator="kind")]


class NormalizedLineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_kind: Literal["catalog", "custom"]
    product_id: Optional[str] = None
    quantity: int = Field(ge=1)
    unit_base_price: Decimal = Field(ge=0)
    unit_offer_price: Decimal = Field(ge=0)
    color: Optional[str] = None
    custom_snapshot: Optional[Dict[str, Any]] = None

    @property
    def line_base_price(self) -> Decimal:
        return self.unit_base_price * self.quantity

    @property
    def line_offer_price(self) -> Decimal:
        return self.unit_offer_price * self.quantity

    def to_order_item(self) -> Dict[str, Any]:
        """Ligne `order_items` (prix de ligne, pas unitaires)."""
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "color": self.color,
            "base_price": str(self.line_base_price),
            "offer_price": str(self.line_offer_price),
            "custom_product": self.custom_snapshot,
        }


# --- Source résolue ---

class DirectCheckout(BaseModel):
    intent: CheckoutIntent


class CartCheckout(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    user_id: str
    cart_id: Optional[str] = None
    items: List[CartItem]


class GatewayOrder(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    currency: str
    amount: int
    client_secret: Optional[str] = None
    status: Optional[str] = None
    receipt: Optional[str] = None
