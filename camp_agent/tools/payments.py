"""LangChain tool for Stripe payment links."""

from __future__ import annotations

import logging

from langchain_core.tools import tool

from camp_agent.errors import InvalidInput, UpstreamError
from camp_agent.services.payment_client import get_payment_client

logger = logging.getLogger(__name__)


@tool
def create_payment_link(
    order_id: int,
    camp_name: str,
    price: str,
    customer_email: str | None = None,
    child_name: str | None = None,
) -> dict:
    """Génère un lien de paiement Stripe sécurisé pour une commande existante.

    Args:
        order_id: ID de la commande WooCommerce (retourné par create_booking).
        camp_name: Nom du camp pour le reçu.
        price: Prix en dollars (ex: "350.00").
        customer_email: Email du client.
        child_name: Nom de l'enfant inscrit.
    """
    try:
        return get_payment_client().create_payment_link(
            order_id,
            camp_name,
            price,
            customer_email=customer_email,
            child_name=child_name,
        )
    except InvalidInput as e:
        return e.as_result()
    except UpstreamError as e:
        logger.error("Failed to create payment link for order %s: %s", order_id, e)
        return e.as_result()
