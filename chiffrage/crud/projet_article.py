from collections.abc import Mapping
from decimal import Decimal, ROUND_HALF_UP
from typing import Any
from sqlalchemy.orm import Session

from chiffrage.db.models import ProjetArticle

CENT = Decimal('0.01')

# Champs modifiables par l'appelant ; les totaux sont toujours dérivés
EDITABLE_FIELDS = (
    'quantite',
    'prix_unitaire_ht',
    'tva',
    'localisation',
    'description',
    'designation_article',
)
PRICING_FIELDS = ('quantite', 'prix_unitaire_ht', 'tva')


def to_decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def q2(value: Decimal | None) -> Decimal | None:
    if value is None:
        return None
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_totals(quantite: Any, prix_unitaire_ht: Any, tva: Any) -> tuple[Decimal | None, Decimal | None]:
    """
    prix_total_ht = quantite x prix_unitaire_ht
    total_ttc = prix_total_ht x (1 + tva / 100)

    Les deux totaux restent NULL tant que la quantité ou le prix est inconnu.
    Une TVA absente vaut 0.
    """
    quantite = to_decimal(quantite)
    prix = to_decimal(prix_unitaire_ht)
    if quantite is None or prix is None:
        return None, None
    taux = to_decimal(tva) or Decimal('0')
    total_ht = q2(quantite * prix)
    total_ttc = q2(total_ht * (1 + taux / 100))
    return total_ht, total_ttc


def get_projet_article(db: Session, projet_article_id: int) -> ProjetArticle | None:
    return db.query(ProjetArticle).filter(ProjetArticle.id_projet_article == projet_article_id).first()


def get_articles_by_structure(db: Session, structure_id: int) -> list[ProjetArticle]:
    return (
        db.query(ProjetArticle)
        .filter(ProjetArticle.id_structure == structure_id)
        .order_by(ProjetArticle.id_projet_article)
        .all()
    )


def find_placeholder(db: Session, structure_id: int) -> ProjetArticle | None:
    return (
        db.query(ProjetArticle)
        .filter(ProjetArticle.id_structure == structure_id, ProjetArticle.id_niveau_6.is_(None))
        .order_by(ProjetArticle.id_projet_article)
        .first()
    )


def add_placeholder(db: Session, structure_id: int) -> ProjetArticle:
    """Ligne sans référence catalogue qui rend visible une structure vide."""
    placeholder = ProjetArticle(id_structure=structure_id, id_niveau_6=None)
    db.add(placeholder)
    db.flush()
    return placeholder


def _assign(article: ProjetArticle, fields: Mapping[str, Any]) -> list[str]:
    changed = []
    for name in EDITABLE_FIELDS:
        if name not in fields:
            continue
        value = fields[name]
        if name in PRICING_FIELDS:
            value = to_decimal(value)
        if getattr(article, name) != value:
            setattr(article, name, value)
            changed.append(name)

    total_ht, total_ttc = compute_totals(article.quantite, article.prix_unitaire_ht, article.tva)
    if article.prix_total_ht != total_ht:
        article.prix_total_ht = total_ht
        changed.append('prix_total_ht')
    if article.total_ttc != total_ttc:
        article.total_ttc = total_ttc
        changed.append('total_ttc')
    return changed


def create_projet_article(
    db: Session, structure_id: int, niveau_6_id: int, fields: Mapping[str, Any]
) -> ProjetArticle:
    """Crée la ligne dans la transaction courante (sans commit)."""
    article = ProjetArticle(id_structure=structure_id, id_niveau_6=niveau_6_id)
    _assign(article, fields)
    db.add(article)
    db.flush()
    return article


def fill_placeholder(
    db: Session, placeholder: ProjetArticle, niveau_6_id: int, fields: Mapping[str, Any]
) -> ProjetArticle:
    placeholder.id_niveau_6 = niveau_6_id
    _assign(placeholder, fields)
    db.flush()
    return placeholder


def apply_projet_article_update(db: Session, article: ProjetArticle, changes: Mapping[str, Any]) -> list[str]:
    """Applique une mise à jour partielle ; retourne les champs réellement modifiés."""
    changed = _assign(article, changes)
    db.flush()
    return changed


def delete_projet_article(db: Session, article: ProjetArticle) -> None:
    db.delete(article)
    db.flush()
