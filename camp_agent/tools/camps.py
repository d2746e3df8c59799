"""LangChain tools for camps, registrations and merchandise.

Each tool wraps a CommerceClient method and returns a JSON-serialisable
dict.  Storefront failures are converted into structured failure objects
so the model can relay them to the parent instead of the turn crashing.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from langchain_core.tools import tool

from camp_agent.errors import InvalidInput, UpstreamError
from camp_agent.services.commerce_client import get_commerce_client

logger = logging.getLogger(__name__)

# Loose RFC 5322 pattern; good enough for parent-supplied addresses.
_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)


def _validate_email(email: str) -> str | None:
    """Return an error message if *email* looks invalid, else ``None``."""
    if not email or not email.strip():
        return "Aucune adresse email fournie. Demandez l'email du parent."
    email = email.strip()
    if not _EMAIL_RE.match(email):
        return (
            f'"{email}" ne semble pas être une adresse email valide. '
            "Demandez au parent de vérifier son adresse."
        )
    return None


def _upstream_failure(action: str, exc: UpstreamError) -> dict[str, Any]:
    logger.error("Failed to %s: %s", action, exc)
    return exc.as_result()


@tool
def get_camps(age: int | None = None, month: int | None = None) -> dict:
    """Récupère la liste des camps de basketball disponibles. Peut filtrer par âge ou mois.

    Args:
        age: Âge de l'enfant pour filtrer les camps appropriés.
        month: Numéro du mois (6=juin, 7=juillet, 8=août).
    """
    try:
        return get_commerce_client().list_offerings(age=age, month=month)
    except UpstreamError as e:
        return {**_upstream_failure("list camps", e), "camps": []}


@tool
def check_availability(product_id: int) -> dict:
    """Vérifie le nombre de places disponibles pour un camp spécifique par son ID produit.

    Args:
        product_id: ID du produit camp dans WooCommerce.
    """
    try:
        return get_commerce_client().check_availability(product_id)
    except UpstreamError as e:
        return _upstream_failure("check availability", e)


@tool
def create_booking(
    product_id: int,
    customer_first_name: str,
    customer_last_name: str,
    customer_email: str,
    child_name: str,
    child_age: int,
    customer_phone: str | None = None,
    quantity: int = 1,
) -> dict:
    """Crée une inscription (commande WooCommerce en attente de paiement) pour un camp.

    La disponibilité est revérifiée avant la création de la commande.

    Args:
        product_id: ID du camp choisi.
        customer_first_name: Prénom du parent.
        customer_last_name: Nom de famille du parent.
        customer_email: Email du parent.
        child_name: Prénom de l'enfant.
        child_age: Âge de l'enfant.
        customer_phone: Téléphone du parent (optionnel).
        quantity: Nombre d'inscriptions (défaut: 1).
    """
    email_error = _validate_email(customer_email)
    if email_error:
        return InvalidInput(email_error).as_result()
    if quantity < 1:
        return InvalidInput("Le nombre d'inscriptions doit être d'au moins 1.").as_result()

    try:
        return get_commerce_client().create_booking(
            product_id,
            first_name=customer_first_name,
            last_name=customer_last_name,
            email=customer_email.strip(),
            child_name=child_name,
            child_age=child_age,
            phone=customer_phone,
            quantity=quantity,
        )
    except UpstreamError as e:
        return _upstream_failure("create booking", e)


@tool
def get_order_status(order_id: int | None = None, email: str | None = None) -> dict:
    """Vérifie le statut d'une commande/inscription par numéro de commande ou email.

    Args:
        order_id: Numéro de commande.
        email: Email du client (pour recherche).
    """
    try:
        if order_id is not None:
            return get_commerce_client().get_order_status(order_id)
        if email:
            return get_commerce_client().get_orders_by_email(email.strip())
    except UpstreamError as e:
        return _upstream_failure("look up order", e)
    return InvalidInput(
        "Veuillez fournir un numéro de commande ou un email."
    ).as_result()


@tool
def get_merch() -> dict:
    """Récupère la liste des produits merchandising Hope Basketball (chandails, accessoires, etc.)."""
    try:
        return get_commerce_client().list_merchandise()
    except UpstreamError as e:
        return {**_upstream_failure("list merchandise", e), "products": []}
