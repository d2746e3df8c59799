"""Canned FAQ for Hope Basketball camps.

The whole FAQ is small, so it is injected into the system prompt
(``get_full_faq``) and also exposed as the ``get_faq`` tool for explicit
lookups by topic.
"""

from __future__ import annotations

import logging
from typing import Any

from langchain_core.tools import tool

from camp_agent.config import CONTACT_EMAIL

logger = logging.getLogger(__name__)

FAQ_TOPICS: dict[str, list[dict[str, str]]] = {
    "inscription": [
        {
            "q": "Comment inscrire mon enfant?",
            "a": (
                "Vous pouvez inscrire votre enfant directement via ce chat! Je vais vous "
                "guider étape par étape. Vous aurez besoin du nom de votre enfant, son âge, "
                "et vos coordonnées. Le paiement se fait en ligne par carte de crédit via "
                "Stripe (sécurisé)."
            ),
        },
        {
            "q": "Peut-on inscrire plusieurs enfants?",
            "a": (
                "Absolument! Vous pouvez inscrire plusieurs enfants. Chaque inscription est "
                "traitée séparément pour que chaque enfant ait sa place réservée."
            ),
        },
    ],
    "paiement": [
        {
            "q": "Quels modes de paiement acceptez-vous?",
            "a": (
                "Nous acceptons les paiements par carte de crédit (Visa, Mastercard, "
                "American Express) via notre plateforme sécurisée Stripe."
            ),
        },
        {
            "q": "Les taxes sont-elles incluses?",
            "a": (
                "Les prix affichés sont avant taxes. La TPS (5%) et la TVQ (9.975%) "
                "s'appliquent au montant."
            ),
        },
    ],
    "annulation": [
        {
            "q": "Quelle est votre politique d'annulation?",
            "a": (
                "Pour toute demande d'annulation ou de remboursement, veuillez contacter "
                f"Hope Basketball directement à {CONTACT_EMAIL}. Chaque situation est "
                "évaluée individuellement."
            ),
        },
    ],
    "equipement": [
        {
            "q": "Que doit apporter mon enfant?",
            "a": (
                "Votre enfant doit apporter : un lunch et des collations, une bouteille "
                "d'eau, des vêtements de sport confortables, et des chaussures de sport "
                "intérieures (semelles non marquantes). Un ballon de basketball est fourni "
                "sur place."
            ),
        },
        {
            "q": "Y a-t-il un service de garde?",
            "a": (
                "Oui! Le service de garde est inclus dans le prix du camp. Il est disponible "
                "de 8h00 à 9h00 le matin et de 16h00 à 17h00 l'après-midi."
            ),
        },
    ],
    "general": [
        {
            "q": "À quel âge peut-on participer?",
            "a": (
                "Les camps sont ouverts aux jeunes de 8 à 17 ans, tous niveaux confondus. "
                "Aucune expérience en basketball n'est requise!"
            ),
        },
        {
            "q": "Où se déroulent les camps?",
            "a": (
                "Les camps se déroulent au Collège Mariste de Québec, situé au "
                "2315 Chemin St-Louis, Québec."
            ),
        },
        {
            "q": "Y a-t-il des places gratuites?",
            "a": (
                "Oui! Hope Basketball offre environ 15 places gratuites par camp pour les "
                "jeunes de milieux défavorisés. C'est au cœur de notre mission sociale. "
                "Contactez-nous pour en savoir plus."
            ),
        },
    ],
}


def lookup_faq(topic: str | None = None) -> dict[str, Any]:
    """Return the FAQ entries for *topic*, or every entry tagged by category."""
    key = (topic or "").strip().lower()
    if key in FAQ_TOPICS:
        return {"success": True, "topic": key, "faqs": FAQ_TOPICS[key]}

    if key:
        logger.debug("Unknown FAQ topic %r, returning all entries", topic)
    all_faqs = [
        {**item, "category": category}
        for category, items in FAQ_TOPICS.items()
        for item in items
    ]
    return {"success": True, "topic": "all", "faqs": all_faqs}


def get_full_faq() -> str:
    """Render the complete FAQ as text (used for system prompt injection)."""
    lines: list[str] = []
    for category, items in FAQ_TOPICS.items():
        lines.append(f"## {category.capitalize()}")
        for item in items:
            lines.append(f"**{item['q']}**")
            lines.append(item["a"])
            lines.append("")
    return "\n".join(lines).strip()


@tool
def get_faq(topic: str | None = None) -> dict:
    """Retourne les questions fréquemment posées sur les camps Hope Basketball.

    Args:
        topic: Sujet de la question (inscription, paiement, annulation,
               equipement, general). Omettre pour tout recevoir.
    """
    return lookup_faq(topic)
