"""
Cascade de recalcul des agrégats en cache.

Chaque étape relit la somme complète des enfants (jamais de delta), elle
peut donc être rejouée sans risque et deux cascades concurrentes finissent
sur les mêmes valeurs.

    bloc.pt          = somme des total_ttc des articles du bloc
    bloc.pu          = bloc.pt / bloc.quantite (si quantite > 0)
    ouvrage.prix_total = somme des total_ttc de toutes ses structures
    lot.prix_total   = somme des total_ttc des ouvrages du lot
    projet.prix_vente = somme des total_ttc de tout le projet
"""

import logging
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session

from chiffrage.core.exceptions import StructuralNotFound
from chiffrage.crud.projet_article import q2, to_decimal
from chiffrage.crud.structure import StructureCoordinates, structure_coordinates
from chiffrage.db.models import Bloc, Ouvrage, Projet, ProjetArticle, ProjetLot, Structure


@dataclass
class AggregateChange:
    """Nouvelles valeurs des agrégats touchés par une modification."""

    id_projet: int
    id_projet_article: Optional[int] = None
    id_projet_lot: Optional[int] = None
    lot_prix_total: Optional[Decimal] = None
    id_ouvrage: Optional[int] = None
    ouvrage_prix_total: Optional[Decimal] = None
    id_bloc: Optional[int] = None
    bloc_pt: Optional[Decimal] = None
    bloc_pu: Optional[Decimal] = None
    prix_vente: Optional[Decimal] = None

    def as_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


class AggregationCascade:
    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(__name__)

    def _sum_ttc(self, query) -> Decimal:
        total = query.scalar()
        return q2(to_decimal(total) or Decimal('0'))

    def _ttc_query(self):
        return (
            self.db.query(func.coalesce(func.sum(ProjetArticle.total_ttc), 0))
            .select_from(ProjetArticle)
            .join(Structure, ProjetArticle.id_structure == Structure.id_structure)
        )

    def coordinates(self, structure_id: int) -> StructureCoordinates:
        coords = structure_coordinates(self.db, structure_id)
        if coords is None:
            raise StructuralNotFound('structure', structure_id)
        return coords

    def recompute_bloc(self, bloc_id: int) -> Optional[Bloc]:
        bloc = self.db.get(Bloc, bloc_id)
        if bloc is None:
            return None

        total = self._sum_ttc(self._ttc_query().filter(Structure.id_bloc == bloc_id))
        bloc.pt = total
        quantite = to_decimal(bloc.quantite)
        bloc.pu = q2(total / quantite) if quantite is not None and quantite > 0 else None
        self.db.flush()
        self.logger.debug("Bloc %s: pt=%s pu=%s", bloc_id, bloc.pt, bloc.pu)
        return bloc

    def recompute_ouvrage(self, ouvrage_id: int) -> Optional[Ouvrage]:
        ouvrage = self.db.get(Ouvrage, ouvrage_id)
        if ouvrage is None:
            return None

        ouvrage.prix_total = self._sum_ttc(self._ttc_query().filter(Structure.id_ouvrage == ouvrage_id))
        self.db.flush()
        self.logger.debug("Ouvrage %s: prix_total=%s", ouvrage_id, ouvrage.prix_total)
        return ouvrage

    def recompute_lot(self, lot_id: int) -> Optional[ProjetLot]:
        lot = self.db.get(ProjetLot, lot_id)
        if lot is None:
            return None

        query = (
            self._ttc_query()
            .join(Ouvrage, Structure.id_ouvrage == Ouvrage.id_ouvrage)
            .filter(Ouvrage.id_projet_lot == lot_id)
        )
        lot.prix_total = self._sum_ttc(query)
        self.db.flush()
        self.logger.debug("Lot %s: prix_total=%s", lot_id, lot.prix_total)
        return lot

    def recompute_projet(self, projet_id: int) -> Optional[Decimal]:
        projet = self.db.get(Projet, projet_id)
        if projet is None:
            return None

        query = (
            self._ttc_query()
            .join(Ouvrage, Structure.id_ouvrage == Ouvrage.id_ouvrage)
            .join(ProjetLot, Ouvrage.id_projet_lot == ProjetLot.id_projet_lot)
            .filter(ProjetLot.id_projet == projet_id)
        )
        projet.prix_vente = self._sum_ttc(query)
        self.db.flush()
        self.logger.debug("Projet %s: prix_vente=%s", projet_id, projet.prix_vente)
        return projet.prix_vente

    def rollup(
        self,
        projet_id: int,
        lot_id: Optional[int] = None,
        ouvrage_id: Optional[int] = None,
        bloc_id: Optional[int] = None,
        projet_article_id: Optional[int] = None,
    ) -> AggregateChange:
        """Bloc, ouvrage puis lot, pour les niveaux fournis ; le projet est traité à part."""
        change = AggregateChange(id_projet=projet_id, id_projet_article=projet_article_id)

        if bloc_id is not None:
            bloc = self.recompute_bloc(bloc_id)
            if bloc is not None:
                change.id_bloc = bloc.id_bloc
                change.bloc_pt = bloc.pt
                change.bloc_pu = bloc.pu

        if ouvrage_id is not None:
            ouvrage = self.recompute_ouvrage(ouvrage_id)
            if ouvrage is not None:
                change.id_ouvrage = ouvrage.id_ouvrage
                change.ouvrage_prix_total = ouvrage.prix_total

        if lot_id is not None:
            lot = self.recompute_lot(lot_id)
            if lot is not None:
                change.id_projet_lot = lot.id_projet_lot
                change.lot_prix_total = lot.prix_total

        return change

    def run_structural(self, coords: StructureCoordinates, projet_article_id: Optional[int] = None) -> AggregateChange:
        return self.rollup(
            coords.id_projet, coords.id_projet_lot, coords.id_ouvrage, coords.id_bloc, projet_article_id
        )

    def run_project(self, projet_id: int) -> Optional[Decimal]:
        return self.recompute_projet(projet_id)

    def on_line_item_changed(self, structure_id: int, projet_article_id: Optional[int] = None) -> AggregateChange:
        """
        Point d'entrée pour un appelant externe : un article de la structure a
        changé, tous les agrégats dépendants sont recalculés dans la
        transaction courante.
        """
        coords = self.coordinates(structure_id)
        change = self.run_structural(coords, projet_article_id)
        change.prix_vente = self.run_project(coords.id_projet)
        return change
