import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from sqlalchemy import func
from sqlalchemy.orm import Session

from chiffrage.core.exceptions import AmbiguousLabel, InvalidName, StructuralNotFound
from chiffrage.core.normalization import clean_label, normalize_label
from chiffrage.crud.base import find_or_create
from chiffrage.crud.projet_article import get_articles_by_structure, to_decimal
from chiffrage.db.models import (
    Bloc,
    Niveau1,
    Niveau2,
    Ouvrage,
    Projet,
    ProjetArticle,
    ProjetLot,
    Structure,
    StructureKind,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StructureCoordinates:
    """Position d'une structure dans l'arbre du projet, relevée avant toute suppression."""

    id_structure: int
    id_ouvrage: int
    id_bloc: int | None
    id_projet_lot: int
    id_projet: int


def _next_index(designations: list[str]) -> int:
    # "2.3" -> 3 ; les désignations saisies à la main sont ignorées
    indexes = []
    for designation in designations:
        suffix = designation.rsplit('.', 1)[-1]
        if suffix.isdigit():
            indexes.append(int(suffix))
    return max(indexes, default=0) + 1


# --- Lots -------------------------------------------------------------------

def get_lot(db: Session, lot_id: int) -> ProjetLot | None:
    return db.query(ProjetLot).filter(ProjetLot.id_projet_lot == lot_id).first()


def get_lots_by_projet(db: Session, projet_id: int) -> list[ProjetLot]:
    return (
        db.query(ProjetLot)
        .filter(ProjetLot.id_projet == projet_id)
        .order_by(ProjetLot.numero_lot, ProjetLot.id_projet_lot)
        .all()
    )


def ensure_lot(db: Session, projet_id: int, niveau_2_id: int) -> tuple[ProjetLot, bool]:
    """
    Lot du projet correspondant à un nœud de niveau 2, créé au besoin.
    Un nouveau lot reçoit le numéro suivant et la désignation "Lot N: <libellé>".
    """
    lot = (
        db.query(ProjetLot)
        .filter(ProjetLot.id_projet == projet_id, ProjetLot.id_niveau_2 == niveau_2_id)
        .first()
    )
    if lot is not None:
        return lot, False

    niveau_2 = db.get(Niveau2, niveau_2_id)
    if niveau_2 is None:
        raise StructuralNotFound('niveau_2', niveau_2_id)

    numero = (db.query(func.max(ProjetLot.numero_lot)).filter(ProjetLot.id_projet == projet_id).scalar() or 0) + 1
    lot, created = find_or_create(
        db,
        ProjetLot,
        scope_match={'id_projet': projet_id, 'id_niveau_2': niveau_2_id},
        insert_fields={
            'numero_lot': numero,
            'designation_lot': f"Lot {numero}: {niveau_2.label}",
            'prix_total': Decimal('0'),
        },
    )
    if created:
        logger.info("Nouveau lot créé: %s (ID: %s)", lot.designation_lot, lot.id_projet_lot)
    return lot, created


def ensure_lot_by_label(
    db: Session, projet_id: int, niveau_2_label: str, niveau_1_label: str | None = None
) -> tuple[ProjetLot, bool]:
    """
    Variante par libellé. Un libellé de niveau 2 n'est unique que sous son
    niveau 1 : ``niveau_1_label`` lève l'ambiguïté, sinon plusieurs
    homonymes donnent ``AmbiguousLabel``.
    """
    query = db.query(Niveau2).filter(Niveau2.label_key == normalize_label(niveau_2_label))
    if clean_label(niveau_1_label) is not None:
        query = (
            query.join(Niveau1, Niveau2.id_niv_1 == Niveau1.id_niveau_1)
            .filter(Niveau1.label_key == normalize_label(niveau_1_label))
        )
    matches = query.order_by(Niveau2.id_niveau_2).all()
    if not matches:
        raise StructuralNotFound('niveau_2', niveau_2_label)
    if len(matches) > 1:
        raise AmbiguousLabel(niveau_2_label, 2, [n.id_niveau_2 for n in matches])
    return ensure_lot(db, projet_id, matches[0].id_niveau_2)


# --- Ouvrages et blocs --------------------------------------------------------

def get_ouvrage(db: Session, ouvrage_id: int) -> Ouvrage | None:
    return db.query(Ouvrage).filter(Ouvrage.id_ouvrage == ouvrage_id).first()


def get_bloc(db: Session, bloc_id: int) -> Bloc | None:
    return db.query(Bloc).filter(Bloc.id_bloc == bloc_id).first()


def ensure_ouvrage(db: Session, lot: ProjetLot, nom_ouvrage: str) -> tuple[Ouvrage, bool]:
    """Ouvrage du lot trouvé par nom (casse et accents ignorés) ou créé avec la désignation "<lot>.<k>"."""
    nom = clean_label(nom_ouvrage)
    if nom is None:
        raise InvalidName('ouvrage', nom_ouvrage)
    designations = [
        d for (d,) in db.query(Ouvrage.designation).filter(Ouvrage.id_projet_lot == lot.id_projet_lot)
    ]
    return find_or_create(
        db,
        Ouvrage,
        scope_match={'id_projet_lot': lot.id_projet_lot, 'nom_key': normalize_label(nom)},
        insert_fields={
            'nom_ouvrage': nom,
            'designation': f"{lot.numero_lot}.{_next_index(designations)}",
            'prix_total': Decimal('0'),
        },
    )


def ensure_bloc(
    db: Session,
    ouvrage: Ouvrage,
    nom_bloc: str,
    unite: str | None = None,
    quantite: Any = None,
) -> tuple[Bloc, bool]:
    nom = clean_label(nom_bloc)
    if nom is None:
        raise InvalidName('bloc', nom_bloc)
    designations = [d for (d,) in db.query(Bloc.designation).filter(Bloc.id_ouvrage == ouvrage.id_ouvrage)]
    return find_or_create(
        db,
        Bloc,
        scope_match={'id_ouvrage': ouvrage.id_ouvrage, 'nom_key': normalize_label(nom)},
        insert_fields={
            'nom_bloc': nom,
            'designation': f"{ouvrage.designation}.{_next_index(designations)}",
            'unite': unite,
            'quantite': to_decimal(quantite),
            'pt': Decimal('0'),
        },
    )


def ensure_structure(db: Session, ouvrage_id: int, bloc_id: int | None = None) -> tuple[Structure, bool]:
    kind = StructureKind.dans_bloc if bloc_id is not None else StructureKind.ouvrage_seul
    return find_or_create(
        db,
        Structure,
        scope_match={'id_ouvrage': ouvrage_id, 'id_bloc': bloc_id},
        insert_fields={'action': kind},
    )


def get_structure(db: Session, structure_id: int) -> Structure | None:
    return db.query(Structure).filter(Structure.id_structure == structure_id).first()


def structure_coordinates(db: Session, structure_id: int) -> StructureCoordinates | None:
    row = (
        db.query(
            Structure.id_structure,
            Structure.id_ouvrage,
            Structure.id_bloc,
            Ouvrage.id_projet_lot,
            ProjetLot.id_projet,
        )
        .join(Ouvrage, Structure.id_ouvrage == Ouvrage.id_ouvrage)
        .join(ProjetLot, Ouvrage.id_projet_lot == ProjetLot.id_projet_lot)
        .filter(Structure.id_structure == structure_id)
        .first()
    )
    if row is None:
        return None
    return StructureCoordinates(*row)


# --- Lecture arborescente -----------------------------------------------------

def _article_dict(article: ProjetArticle) -> dict[str, Any]:
    return {
        "id_projet_article": article.id_projet_article,
        "id_niveau_6": article.id_niveau_6,
        "designation_article": article.designation_article,
        "quantite": article.quantite,
        "prix_unitaire_ht": article.prix_unitaire_ht,
        "tva": article.tva,
        "prix_total_ht": article.prix_total_ht,
        "total_ttc": article.total_ttc,
        "localisation": article.localisation,
        "description": article.description,
        "placeholder": article.is_placeholder,
    }


def get_projet_structure(db: Session, projet_id: int) -> dict | None:
    """
    Structure complète d'un projet : lots, ouvrages, articles directs et blocs
    avec leurs articles, accompagnés des totaux en cache.
    """
    projet = db.query(Projet).filter(Projet.id_projet == projet_id).first()
    if not projet:
        return None

    structure = {
        "id_projet": projet.id_projet,
        "nom_projet": projet.nom_projet,
        "prix_vente": projet.prix_vente,
        "lots": [],
    }

    for lot in get_lots_by_projet(db, projet_id):
        lot_dict = {
            "id_projet_lot": lot.id_projet_lot,
            "numero_lot": lot.numero_lot,
            "designation_lot": lot.designation_lot,
            "prix_total": lot.prix_total,
            "ouvrages": [],
        }

        ouvrages = (
            db.query(Ouvrage)
            .filter(Ouvrage.id_projet_lot == lot.id_projet_lot)
            .order_by(Ouvrage.id_ouvrage)
            .all()
        )
        for ouvrage in ouvrages:
            ouvrage_dict = {
                "id_ouvrage": ouvrage.id_ouvrage,
                "nom_ouvrage": ouvrage.nom_ouvrage,
                "designation": ouvrage.designation,
                "prix_total": ouvrage.prix_total,
                "articles": [],
                "blocs": [],
            }
            structures = {
                s.id_bloc: s
                for s in db.query(Structure).filter(Structure.id_ouvrage == ouvrage.id_ouvrage).all()
            }

            direct = structures.get(None)
            if direct is not None:
                ouvrage_dict["articles"] = [
                    _article_dict(a) for a in get_articles_by_structure(db, direct.id_structure)
                ]

            blocs = db.query(Bloc).filter(Bloc.id_ouvrage == ouvrage.id_ouvrage).order_by(Bloc.id_bloc).all()
            for bloc in blocs:
                bloc_structure = structures.get(bloc.id_bloc)
                ouvrage_dict["blocs"].append({
                    "id_bloc": bloc.id_bloc,
                    "nom_bloc": bloc.nom_bloc,
                    "designation": bloc.designation,
                    "unite": bloc.unite,
                    "quantite": bloc.quantite,
                    "pu": bloc.pu,
                    "pt": bloc.pt,
                    "articles": [
                        _article_dict(a) for a in get_articles_by_structure(db, bloc_structure.id_structure)
                    ] if bloc_structure else [],
                })

            lot_dict["ouvrages"].append(ouvrage_dict)

        structure["lots"].append(lot_dict)

    return structure
