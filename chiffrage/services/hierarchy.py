"""
Résolution d'un chemin de nomenclature (niveaux 1 à 6) en identifiant de
feuille, avec création des nœuds manquants.

Les niveaux 4 et 5 sont facultatifs : un niveau 5 peut dépendre directement
d'un niveau 3, un niveau 6 d'un niveau 3 ou 4. La table ``LEVELS`` décrit
pour chaque niveau les parents qui entrent dans sa portée d'unicité.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from sqlalchemy.orm import Session

from chiffrage.core.exceptions import MissingHierarchyLevel, StructuralNotFound
from chiffrage.core.normalization import normalize_label
from chiffrage.crud.base import find_or_create
from chiffrage.crud.niveau import CatalogPath, build_scope_key, catalog_path
from chiffrage.db.models import NIVEAU_MODELS
from chiffrage.schemas.niveau import HierarchyLabels


@dataclass(frozen=True)
class LevelSpec:
    level: int
    parents: tuple[int, ...]
    optional: bool = False


LEVELS: tuple[LevelSpec, ...] = (
    LevelSpec(1, ()),
    LevelSpec(2, (1,)),
    LevelSpec(3, (2,)),
    LevelSpec(4, (3,), optional=True),
    LevelSpec(5, (3, 4), optional=True),
    LevelSpec(6, (3, 4, 5)),
)

REQUIRED_LEVELS = tuple(spec.level for spec in LEVELS if not spec.optional)


class HierarchyResolver:
    """Trouve ou crée les nœuds d'un chemin dans la transaction de l'appelant."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(__name__)

    def resolve(self, labels: Optional[HierarchyLabels], explicit_leaf_id: Optional[int] = None) -> int:
        """
        Retourne l'identifiant de la feuille (niveau 6).

        Args:
            labels: Libellés des six niveaux
            explicit_leaf_id: Feuille déjà connue ; prioritaire sur les libellés

        Returns:
            id_niveau_6
        """
        return self.resolve_path(labels, explicit_leaf_id).niveau_6

    def resolve_path(self, labels: Optional[HierarchyLabels], explicit_leaf_id: Optional[int] = None) -> CatalogPath:
        if explicit_leaf_id is not None:
            path = catalog_path(self.db, explicit_leaf_id)
            if path is None:
                raise StructuralNotFound('niveau_6', explicit_leaf_id)
            return path

        labels = labels or HierarchyLabels()
        missing = [level for level in REQUIRED_LEVELS if labels.label(level) is None]
        if missing:
            raise MissingHierarchyLevel(missing)

        resolved: dict[int, Optional[int]] = {}
        for spec in LEVELS:
            label = labels.label(spec.level)
            if label is None:
                resolved[spec.level] = None
                continue

            parents = {p: resolved[p] for p in spec.parents}
            row, created = find_or_create(
                self.db,
                NIVEAU_MODELS[spec.level],
                scope_match={
                    'scope_key': build_scope_key(parents),
                    'label_key': normalize_label(label),
                },
                insert_fields={
                    'label': label,
                    **{f'id_niv_{p}': parent_id for p, parent_id in parents.items()},
                },
                level=spec.level,
            )
            if created:
                self.logger.debug("Niveau %s créé: '%s' (ID: %s)", spec.level, label, row.pk)
            resolved[spec.level] = row.pk

        return CatalogPath(**{f'niveau_{n}': resolved[n] for n in range(1, 7)})
