"""
Taxonomie des erreurs du tunnel de paiement.

Chaque erreur porte son code HTTP et un message client. Les erreurs >= 500
sont rendues avec un corps opaque ({}) et journalisées côté serveur
(voir shop_backend.app_setup.exceptions).
"""
from typing import Optional


class CheckoutError(Exception):
    status_code: int = 400
    message: str = "Requête de paiement invalide"

    def __init__(self, message: Optional[str] = None):
        if message:
            self.message = message
        super().__init__(self.message)


class MissingAddress(CheckoutError):
    message = "Adresse de livraison manquante"


class MissingUser(CheckoutError):
    message = "Identifiant utilisateur manquant dans la session"


class InvalidCheckoutToken(CheckoutError):
    message = "Jeton de paiement invalide"


class ProductNotFound(CheckoutError):
    message = "Produit introuvable ou identifiant produit invalide"


class EmptyCart(CheckoutError):
    message = "Le panier est vide"


class CheckoutInProgress(CheckoutError):
    status_code = 409
    message = "Un paiement est déjà en cours pour cet utilisateur"


class PaymentGatewayError(CheckoutError):
    status_code = 500
    message = "Erreur de la passerelle de paiement"


class PersistenceError(CheckoutError):
    status_code = 500
    message = "Erreur d'accès à la base de données"


class CartInvalidationError(CheckoutError):
    # Non bloquante: capturée et journalisée par le service
    status_code = 500
    message = "Échec du vidage du panier"
