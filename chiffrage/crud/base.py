import logging
from collections.abc import Mapping
from typing import Any, TypeVar
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from chiffrage.core.exceptions import AncestorNotFound, ConcurrentCreateRace

logger = logging.getLogger(__name__)

ModelT = TypeVar('ModelT')


def _lookup(db: Session, model: type[ModelT], scope_match: Mapping[str, Any]) -> ModelT | None:
    query = db.query(model)
    for name, value in scope_match.items():
        column = getattr(model, name)
        query = query.filter(column.is_(None) if value is None else column == value)
    return query.first()


def _insert(db: Session, model: type[ModelT], values: dict[str, Any]) -> ModelT:
    try:
        with db.begin_nested():
            row = model(**values)
            db.add(row)
    except IntegrityError as exc:
        raise ConcurrentCreateRace(model.__tablename__, ctx={'error': str(exc.orig)}) from exc
    return row


def find_or_create(
    db: Session,
    model: type[ModelT],
    scope_match: Mapping[str, Any],
    insert_fields: Mapping[str, Any] | None = None,
    *,
    level: int | None = None,
) -> tuple[ModelT, bool]:
    """
    Récupère la ligne correspondant à ``scope_match`` ou la crée.

    L'insertion se fait dans un SAVEPOINT : si une transaction concurrente a
    créé la même ligne entre la lecture et l'écriture, la contrainte unique
    rejette l'insertion, le SAVEPOINT est annulé et la ligne gagnante est
    relue une seule fois. Si cette relecture ne trouve rien, le conflit
    venait d'un parent disparu.

    Args:
        db: Session de base de données (transaction de l'appelant)
        model: Classe ORM
        scope_match: Colonnes identifiant la ligne (``None`` => IS NULL)
        insert_fields: Colonnes supplémentaires utilisées à la création
        level: Niveau de nomenclature, pour le contexte d'erreur

    Returns:
        Tuple (ligne, créée)
    """
    row = _lookup(db, model, scope_match)
    if row is not None:
        return row, False

    values = {**scope_match, **(insert_fields or {})}
    try:
        return _insert(db, model, values), True
    except ConcurrentCreateRace as race:
        logger.info("Création concurrente détectée sur %s, relecture: %s", model.__tablename__, race.ctx)

    row = _lookup(db, model, scope_match)
    if row is None:
        raise AncestorNotFound(level, ctx={'table': model.__tablename__, **dict(scope_match)})
    return row, False
