from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chiffrage.core.exceptions import LabelConflict, MissingHierarchyLevel, StructuralNotFound
from chiffrage.core.normalization import clean_label, normalize_label
from chiffrage.db.models import NIVEAU_MODELS, Niveau2, Niveau3, Niveau6


@dataclass(frozen=True)
class CatalogPath:
    """Identifiants d'un chemin complet, niveaux 4 et 5 éventuellement absents."""

    niveau_1: int
    niveau_2: int
    niveau_3: int
    niveau_4: int | None
    niveau_5: int | None
    niveau_6: int

    def as_dict(self) -> dict[str, int | None]:
        return {f'niveau_{n}': getattr(self, f'niveau_{n}') for n in range(1, 7)}


def build_scope_key(parents: Mapping[int, int | None]) -> str:
    return ';'.join(
        f"{level}:{'-' if parents[level] is None else parents[level]}"
        for level in sorted(parents)
    )


def get_niveau(db: Session, level: int, niveau_id: int):
    model = NIVEAU_MODELS[level]
    return db.get(model, niveau_id)


def get_niveaux(db: Session, level: int, skip: int = 0, limit: int = 100) -> list:
    model = NIVEAU_MODELS[level]
    pk = getattr(model, f'id_niveau_{level}')
    return db.query(model).order_by(pk).offset(skip).limit(limit).all()


def get_niveau_children(db: Session, level: int, niveau_id: int) -> list:
    """
    Enfants directs d'un nœud. Sous un niveau 3 on trouve les niveaux 4 mais
    aussi les niveaux 5 et 6 qui sautent les niveaux intermédiaires.
    """
    children = []
    for child_level in range(level + 1, 7):
        model = NIVEAU_MODELS[child_level]
        if level not in model.parent_levels:
            continue
        query = db.query(model).filter(getattr(model, f'id_niv_{level}') == niveau_id)
        for skipped in model.parent_levels:
            if skipped > level:
                query = query.filter(getattr(model, f'id_niv_{skipped}').is_(None))
        children.extend(query.order_by(getattr(model, f'id_niveau_{child_level}')).all())
    return children


def _nearest_parent(node) -> tuple[int, int] | None:
    for parent_level in reversed(node.parent_levels):
        parent_id = node.parent_id(parent_level)
        if parent_id is not None:
            return parent_level, parent_id
    return None


def get_catalog_tree(db: Session) -> list[dict[str, Any]]:
    """
    Arbre complet de la nomenclature.
    Un niveau 5 est rattaché au niveau 4 s'il existe, sinon au niveau 3 ;
    un niveau 6 au niveau 5, sinon 4, sinon 3.
    """
    nodes: dict[tuple[int, int], dict[str, Any]] = {}
    rows_by_level = {}
    for level, model in NIVEAU_MODELS.items():
        rows = db.query(model).order_by(getattr(model, f'id_niveau_{level}')).all()
        rows_by_level[level] = rows
        for row in rows:
            nodes[(level, row.pk)] = {
                "level": level,
                "id": row.pk,
                "label": row.label,
                "children": [],
            }

    roots = []
    for level, rows in rows_by_level.items():
        for row in rows:
            node = nodes[(level, row.pk)]
            if level == 1:
                roots.append(node)
                continue
            parent = _nearest_parent(row)
            if parent is not None and parent in nodes:
                nodes[parent]["children"].append(node)
    return roots


def rename_niveau(db: Session, level: int, niveau_id: int, label: str):
    """Correction d'un libellé ; le nouveau libellé doit rester unique chez les frères."""
    model = NIVEAU_MODELS[level]
    row = db.get(model, niveau_id)
    if row is None:
        raise StructuralNotFound(f'niveau_{level}', niveau_id)

    cleaned = clean_label(label)
    if cleaned is None:
        raise MissingHierarchyLevel([level])

    key = normalize_label(cleaned)
    pk = getattr(model, f'id_niveau_{level}')
    clash = db.query(model).filter(
        model.scope_key == row.scope_key,
        model.label_key == key,
        pk != niveau_id,
    ).first()
    if clash is not None:
        raise LabelConflict(cleaned, f"niveau_{level}")

    row.label = cleaned
    row.label_key = key
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise LabelConflict(cleaned, f"niveau_{level}") from exc
    db.refresh(row)
    return row


def catalog_path(db: Session, leaf_id: int) -> CatalogPath | None:
    """Remonte d'une feuille de niveau 6 jusqu'au niveau 1."""
    leaf = db.get(Niveau6, leaf_id)
    if leaf is None:
        return None
    n3 = db.get(Niveau3, leaf.id_niv_3)
    n2 = db.get(Niveau2, n3.id_niv_2)
    return CatalogPath(
        niveau_1=n2.id_niv_1,
        niveau_2=n2.id_niveau_2,
        niveau_3=n3.id_niveau_3,
        niveau_4=leaf.id_niv_4,
        niveau_5=leaf.id_niv_5,
        niveau_6=leaf.id_niveau_6,
    )
