"""
Service de placement des articles dans l'arbre d'un projet.

Chaque opération suit le même déroulé dans une seule transaction :
résolution de la nomenclature, structure (lot / ouvrage / bloc), écriture
de l'article, recalcul bloc -> ouvrage -> lot, commit. Le prix de vente du
projet est recalculé après le commit lorsque ``defer_project_cascade`` est
actif ; un échec à ce stade n'annule pas la modification et remonte comme
avertissement. L'événement est émis en dernier.
"""

import logging
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Optional, Union
from pydantic import BaseModel
from sqlalchemy.orm import Session

from chiffrage.core.config import settings
from chiffrage.core.exceptions import AggregateRecomputeFailed, InvalidName, LabelConflict, StructuralNotFound
from chiffrage.core.normalization import clean_label, normalize_label
from chiffrage.crud import evenement as evenement_crud
from chiffrage.crud import projet as projet_crud
from chiffrage.crud import projet_article as article_crud
from chiffrage.crud import structure as structure_crud
from chiffrage.crud.niveau import CatalogPath
from chiffrage.crud.projet_article import EDITABLE_FIELDS, to_decimal
from chiffrage.db.models import Bloc, Ouvrage, Projet, ProjetArticle, ProjetLot, Structure
from chiffrage.schemas.niveau import HierarchyLabels
from chiffrage.schemas.placement import PlacementCoordinates
from chiffrage.services.cascade import AggregateChange, AggregationCascade
from chiffrage.services.events import ChangeEvent, EventAction, EventSink, NullEventSink
from chiffrage.services.hierarchy import HierarchyResolver


@dataclass
class MutationResult:
    ok: bool = True
    projet_article: Optional[ProjetArticle] = None
    entity: Any = None
    changes: Optional[AggregateChange] = None
    deleted: dict[str, int] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


class PlacementService:
    def __init__(
        self,
        db: Session,
        event_sink: Optional[EventSink] = None,
        defer_project_cascade: Optional[bool] = None,
    ):
        self.db = db
        self.event_sink = event_sink or NullEventSink()
        if defer_project_cascade is None:
            defer_project_cascade = settings.DEFER_PROJECT_CASCADE
        self.defer_project_cascade = defer_project_cascade

        self.resolver = HierarchyResolver(db)
        self.cascade = AggregationCascade(db)
        self.logger = logging.getLogger(__name__)

    # --- Transaction ---------------------------------------------------------

    @contextmanager
    def _atomic(self):
        try:
            yield
        except Exception:
            self.db.rollback()
            raise

    def _commit(self, change: AggregateChange) -> None:
        if not self.defer_project_cascade:
            change.prix_vente = self.cascade.run_project(change.id_projet)
        self.db.commit()

    def _after_commit(self, change: AggregateChange) -> list[str]:
        """Recalcul du prix de vente hors transaction principale."""
        if not self.defer_project_cascade:
            return []
        try:
            change.prix_vente = self.cascade.run_project(change.id_projet)
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            failure = AggregateRecomputeFailed(change.id_projet, str(exc))
            self.logger.exception("%s", failure)
            return [failure.code.value]
        return []

    def _emit(self, event: ChangeEvent) -> None:
        try:
            self.event_sink.emit(event)
        except Exception:
            self.logger.exception("Émission de l'événement %s en échec", event.action)

    # --- Lectures avec contrôle ---------------------------------------------

    def _require_projet(self, projet_id: int) -> Projet:
        projet = projet_crud.get_projet(self.db, projet_id)
        if projet is None:
            raise StructuralNotFound('projet', projet_id)
        return projet

    def _require_lot(self, projet_id: Optional[int], lot_id: int) -> ProjetLot:
        lot = structure_crud.get_lot(self.db, lot_id)
        if lot is None or (projet_id is not None and lot.id_projet != projet_id):
            raise StructuralNotFound('projet_lot', lot_id)
        return lot

    def _require_ouvrage(self, projet_id: Optional[int], ouvrage_id: int) -> tuple[Ouvrage, ProjetLot]:
        ouvrage = structure_crud.get_ouvrage(self.db, ouvrage_id)
        if ouvrage is None:
            raise StructuralNotFound('ouvrage', ouvrage_id)
        lot = structure_crud.get_lot(self.db, ouvrage.id_projet_lot)
        if projet_id is not None and lot.id_projet != projet_id:
            raise StructuralNotFound('ouvrage', ouvrage_id)
        return ouvrage, lot

    def _require_article(self, projet_article_id: int) -> ProjetArticle:
        article = article_crud.get_projet_article(self.db, projet_article_id)
        if article is None:
            raise StructuralNotFound('projet_article', projet_article_id)
        return article

    # --- Structure -----------------------------------------------------------

    def _ensure_bloc_structure(self, ouvrage: Ouvrage, bloc: Optional[Bloc]) -> Structure:
        structure, created = structure_crud.ensure_structure(
            self.db, ouvrage.id_ouvrage, bloc.id_bloc if bloc is not None else None
        )
        if created:
            self.logger.debug("Structure %s créée (%s)", structure.id_structure, structure.action.value)
        return structure

    def _locate_structure(self, projet_id: int, coordinates: PlacementCoordinates, path: CatalogPath) -> Structure:
        if coordinates.id_structure is not None:
            coords = structure_crud.structure_coordinates(self.db, coordinates.id_structure)
            if coords is None or coords.id_projet != projet_id:
                raise StructuralNotFound('structure', coordinates.id_structure)
            return structure_crud.get_structure(self.db, coordinates.id_structure)

        if coordinates.id_ouvrage is not None:
            ouvrage, _ = self._require_ouvrage(projet_id, coordinates.id_ouvrage)
        else:
            lot, _ = structure_crud.ensure_lot(self.db, projet_id, path.niveau_2)
            ouvrage, _ = structure_crud.ensure_ouvrage(self.db, lot, coordinates.nom_ouvrage)

        bloc = None
        if coordinates.id_bloc is not None:
            bloc = structure_crud.get_bloc(self.db, coordinates.id_bloc)
            if bloc is None or bloc.id_ouvrage != ouvrage.id_ouvrage:
                raise StructuralNotFound('bloc', coordinates.id_bloc)
        elif clean_label(coordinates.nom_bloc):
            bloc, _ = structure_crud.ensure_bloc(
                self.db, ouvrage, coordinates.nom_bloc, coordinates.unite_bloc, coordinates.quantite_bloc
            )

        return self._ensure_bloc_structure(ouvrage, bloc)

    def _ensure_visible(self, structure: Structure) -> None:
        # Une structure sans article reçoit une ligne vide pour rester visible
        if not article_crud.get_articles_by_structure(self.db, structure.id_structure):
            article_crud.add_placeholder(self.db, structure.id_structure)

    # --- Articles ------------------------------------------------------------

    def place_article(
        self,
        projet_id: int,
        coordinates: PlacementCoordinates,
        catalog: Union[HierarchyLabels, int],
        quantite: Any = None,
        prix_unitaire_ht: Any = None,
        tva: Any = None,
        localisation: Optional[str] = None,
        description: Optional[str] = None,
        designation_article: Optional[str] = None,
    ) -> MutationResult:
        """
        Place un article dans le projet.

        Args:
            projet_id: ID du projet
            coordinates: Position dans l'arbre du projet
            catalog: Libellés des niveaux 1 à 6, ou ID d'une feuille existante
            quantite, prix_unitaire_ht, tva: Valeurs de chiffrage
            localisation, description, designation_article: Informations libres

        Returns:
            MutationResult avec l'article créé et les agrégats recalculés
        """
        fields = {
            'quantite': quantite,
            'prix_unitaire_ht': prix_unitaire_ht,
            'tva': tva,
            'localisation': localisation,
            'description': description,
            'designation_article': designation_article,
        }

        with self._atomic():
            self._require_projet(projet_id)
            if isinstance(catalog, int):
                path = self.resolver.resolve_path(None, explicit_leaf_id=catalog)
            else:
                path = self.resolver.resolve_path(catalog)

            structure = self._locate_structure(projet_id, coordinates, path)

            placeholder = article_crud.find_placeholder(self.db, structure.id_structure)
            if placeholder is not None:
                article = article_crud.fill_placeholder(self.db, placeholder, path.niveau_6, fields)
                self.logger.debug("Emplacement vide %s complété", article.id_projet_article)
            else:
                article = article_crud.create_projet_article(self.db, structure.id_structure, path.niveau_6, fields)

            coords = self.cascade.coordinates(structure.id_structure)
            change = self.cascade.run_structural(coords, article.id_projet_article)
            self._commit(change)

        warnings = self._after_commit(change)
        self.logger.info(
            "Article %s placé dans la structure %s (projet %s)",
            article.id_projet_article, structure.id_structure, projet_id,
        )
        self._emit(ChangeEvent(
            action=EventAction.ARTICLE_AJOUTE,
            id_projet=projet_id,
            id_projet_article=article.id_projet_article,
            changed_fields={
                'id_structure': structure.id_structure,
                'id_niveau_6': path.niveau_6,
                'prix_total_ht': article.prix_total_ht,
                'total_ttc': article.total_ttc,
                **{k: v for k, v in fields.items() if v is not None},
            },
        ))
        return MutationResult(projet_article=article, changes=change, warnings=warnings)

    def update_placement(
        self, projet_article_id: int, changes: Union[Mapping[str, Any], BaseModel]
    ) -> MutationResult:
        """Mise à jour partielle (quantité, prix, TVA, localisation...)."""
        if isinstance(changes, BaseModel):
            changes = changes.model_dump(exclude_unset=True)
        updates = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}

        with self._atomic():
            article = self._require_article(projet_article_id)
            changed = article_crud.apply_projet_article_update(self.db, article, updates)
            coords = self.cascade.coordinates(article.id_structure)
            change = self.cascade.run_structural(coords, article.id_projet_article)
            self._commit(change)

        warnings = self._after_commit(change)
        self._emit(ChangeEvent(
            action=EventAction.ARTICLE_MODIFIE,
            id_projet=coords.id_projet,
            id_projet_article=article.id_projet_article,
            changed_fields={name: getattr(article, name) for name in changed},
        ))
        return MutationResult(projet_article=article, changes=change, warnings=warnings)

    def remove_placement(self, projet_article_id: int) -> MutationResult:
        with self._atomic():
            article = self._require_article(projet_article_id)
            # Coordonnées relevées avant suppression
            coords = self.cascade.coordinates(article.id_structure)
            article_crud.delete_projet_article(self.db, article)
            change = self.cascade.run_structural(coords, projet_article_id)
            self._commit(change)

        warnings = self._after_commit(change)
        self._emit(ChangeEvent(
            action=EventAction.ARTICLE_SUPPRIME,
            id_projet=coords.id_projet,
            id_projet_article=projet_article_id,
            changed_fields={'id_structure': coords.id_structure},
        ))
        return MutationResult(ok=True, changes=change, deleted={'projet_article': 1}, warnings=warnings)

    # --- Lots, ouvrages, blocs ---------------------------------------------

    def create_lot(self, projet_id: int, niveau_2_id: int) -> MutationResult:
        with self._atomic():
            self._require_projet(projet_id)
            lot, created = structure_crud.ensure_lot(self.db, projet_id, niveau_2_id)
            self.db.commit()

        if created:
            self._emit(ChangeEvent(
                action=EventAction.LOT_AJOUTE,
                id_projet=projet_id,
                changed_fields={'id_projet_lot': lot.id_projet_lot, 'designation_lot': lot.designation_lot},
            ))
        return MutationResult(entity=lot)

    def update_lot(
        self, projet_id: int, lot_id: int, changes: Union[Mapping[str, Any], BaseModel]
    ) -> MutationResult:
        """Change la désignation d'un lot ; le numéro et le niveau 2 restent fixes."""
        if isinstance(changes, BaseModel):
            changes = changes.model_dump(exclude_unset=True)

        with self._atomic():
            lot = self._require_lot(projet_id, lot_id)
            changed = {}
            if 'designation_lot' in changes:
                designation = clean_label(changes['designation_lot'])
                if designation is None:
                    raise InvalidName('lot', changes['designation_lot'])
                if designation != lot.designation_lot:
                    changed['designation_lot'] = {'old': lot.designation_lot, 'new': designation}
                    lot.designation_lot = designation
            self.db.commit()

        if changed:
            self._emit(ChangeEvent(
                action=EventAction.LOT_MODIFIE,
                id_projet=projet_id,
                changed_fields={'id_projet_lot': lot_id, **changed},
            ))
        return MutationResult(entity=lot)

    def create_ouvrage(
        self,
        projet_id: int,
        lot_id: int,
        nom_ouvrage: str,
        nom_bloc: Optional[str] = None,
        unite_bloc: Optional[str] = None,
        quantite_bloc: Any = None,
    ) -> MutationResult:
        """Crée un ouvrage (et son premier bloc) avec une ligne vide pour l'afficher."""
        with self._atomic():
            lot = self._require_lot(projet_id, lot_id)
            ouvrage, _ = structure_crud.ensure_ouvrage(self.db, lot, nom_ouvrage)
            bloc = None
            if clean_label(nom_bloc):
                bloc, _ = structure_crud.ensure_bloc(self.db, ouvrage, nom_bloc, unite_bloc, quantite_bloc)
            structure = self._ensure_bloc_structure(ouvrage, bloc)
            self._ensure_visible(structure)

            change = self.cascade.run_structural(self.cascade.coordinates(structure.id_structure))
            self._commit(change)

        warnings = self._after_commit(change)
        self._emit(ChangeEvent(
            action=EventAction.OUVRAGE_AJOUTE,
            id_projet=projet_id,
            changed_fields={'id_ouvrage': ouvrage.id_ouvrage, 'designation': ouvrage.designation},
        ))
        return MutationResult(entity=ouvrage, changes=change, warnings=warnings)

    def update_ouvrage(self, ouvrage_id: int, changes: Union[Mapping[str, Any], BaseModel]) -> MutationResult:
        """Renomme un ouvrage ou corrige sa désignation ; les totaux ne bougent pas."""
        if isinstance(changes, BaseModel):
            changes = changes.model_dump(exclude_unset=True)

        with self._atomic():
            ouvrage, lot = self._require_ouvrage(None, ouvrage_id)

            changed = {}
            if 'nom_ouvrage' in changes:
                nom = clean_label(changes['nom_ouvrage'])
                if nom is None:
                    raise InvalidName('ouvrage', changes['nom_ouvrage'])
                if nom != ouvrage.nom_ouvrage:
                    key = normalize_label(nom)
                    clash = (
                        self.db.query(Ouvrage)
                        .filter(
                            Ouvrage.id_projet_lot == ouvrage.id_projet_lot,
                            Ouvrage.nom_key == key,
                            Ouvrage.id_ouvrage != ouvrage_id,
                        )
                        .first()
                    )
                    if clash is not None:
                        raise LabelConflict(nom, lot.designation_lot)
                    changed['nom_ouvrage'] = {'old': ouvrage.nom_ouvrage, 'new': nom}
                    ouvrage.nom_ouvrage = nom
                    ouvrage.nom_key = key
            if 'designation' in changes:
                designation = clean_label(changes['designation'])
                if designation is None:
                    raise InvalidName('ouvrage', changes['designation'])
                if designation != ouvrage.designation:
                    changed['designation'] = {'old': ouvrage.designation, 'new': designation}
                    ouvrage.designation = designation
            self.db.commit()

        if changed:
            self._emit(ChangeEvent(
                action=EventAction.OUVRAGE_MODIFIE,
                id_projet=lot.id_projet,
                changed_fields={'id_ouvrage': ouvrage_id, **changed},
            ))
        return MutationResult(entity=ouvrage)

    def create_bloc(
        self, ouvrage_id: int, nom_bloc: str, unite: Optional[str] = None, quantite: Any = None
    ) -> MutationResult:
        with self._atomic():
            ouvrage, lot = self._require_ouvrage(None, ouvrage_id)
            bloc, _ = structure_crud.ensure_bloc(self.db, ouvrage, nom_bloc, unite, quantite)
            structure = self._ensure_bloc_structure(ouvrage, bloc)
            self._ensure_visible(structure)

            change = self.cascade.run_structural(self.cascade.coordinates(structure.id_structure))
            self._commit(change)

        warnings = self._after_commit(change)
        self._emit(ChangeEvent(
            action=EventAction.BLOC_AJOUTE,
            id_projet=lot.id_projet,
            changed_fields={'id_bloc': bloc.id_bloc, 'designation': bloc.designation},
        ))
        return MutationResult(entity=bloc, changes=change, warnings=warnings)

    def update_bloc(self, bloc_id: int, changes: Union[Mapping[str, Any], BaseModel]) -> MutationResult:
        """Renomme un bloc ou change son unité / sa quantité ; le prix unitaire suit la quantité."""
        if isinstance(changes, BaseModel):
            changes = changes.model_dump(exclude_unset=True)

        with self._atomic():
            bloc = structure_crud.get_bloc(self.db, bloc_id)
            if bloc is None:
                raise StructuralNotFound('bloc', bloc_id)
            ouvrage, lot = self._require_ouvrage(None, bloc.id_ouvrage)

            changed = {}
            nom = clean_label(changes.get('nom_bloc'))
            if nom is None and changes.get('nom_bloc') is not None:
                raise InvalidName('bloc', changes['nom_bloc'])
            if nom is not None and nom != bloc.nom_bloc:
                key = normalize_label(nom)
                clash = (
                    self.db.query(Bloc)
                    .filter(Bloc.id_ouvrage == bloc.id_ouvrage, Bloc.nom_key == key, Bloc.id_bloc != bloc_id)
                    .first()
                )
                if clash is not None:
                    raise LabelConflict(nom, f"ouvrage {ouvrage.designation}")
                bloc.nom_bloc = nom
                bloc.nom_key = key
                changed['nom_bloc'] = nom
            if 'unite' in changes and changes['unite'] != bloc.unite:
                bloc.unite = changes['unite']
                changed['unite'] = bloc.unite
            if 'quantite' in changes and to_decimal(changes['quantite']) != bloc.quantite:
                bloc.quantite = to_decimal(changes['quantite'])
                changed['quantite'] = bloc.quantite
            self.db.flush()

            change = self.cascade.rollup(lot.id_projet, lot.id_projet_lot, ouvrage.id_ouvrage, bloc.id_bloc)
            self._commit(change)

        warnings = self._after_commit(change)
        self._emit(ChangeEvent(
            action=EventAction.BLOC_MODIFIE,
            id_projet=lot.id_projet,
            changed_fields={'id_bloc': bloc_id, **changed, 'pu': bloc.pu},
        ))
        return MutationResult(entity=bloc, changes=change, warnings=warnings)

    def _delete_structures(self, structure_ids: list[int]) -> dict[str, int]:
        if not structure_ids:
            return {'projet_article': 0, 'structure': 0}
        articles = (
            self.db.query(ProjetArticle)
            .filter(ProjetArticle.id_structure.in_(structure_ids))
            .delete(synchronize_session='fetch')
        )
        structures = (
            self.db.query(Structure)
            .filter(Structure.id_structure.in_(structure_ids))
            .delete(synchronize_session='fetch')
        )
        return {'projet_article': articles, 'structure': structures}

    def delete_bloc(self, bloc_id: int) -> MutationResult:
        with self._atomic():
            bloc = structure_crud.get_bloc(self.db, bloc_id)
            if bloc is None:
                raise StructuralNotFound('bloc', bloc_id)
            ouvrage, lot = self._require_ouvrage(None, bloc.id_ouvrage)

            structure_ids = [
                s for (s,) in self.db.query(Structure.id_structure).filter(Structure.id_bloc == bloc_id)
            ]
            deleted = self._delete_structures(structure_ids)
            deleted['bloc'] = (
                self.db.query(Bloc).filter(Bloc.id_bloc == bloc_id).delete(synchronize_session='fetch')
            )

            change = self.cascade.rollup(lot.id_projet, lot.id_projet_lot, ouvrage.id_ouvrage)
            self._commit(change)

        warnings = self._after_commit(change)
        self._emit(ChangeEvent(
            action=EventAction.BLOC_SUPPRIME,
            id_projet=lot.id_projet,
            changed_fields={'id_bloc': bloc_id, 'deleted': deleted},
        ))
        return MutationResult(changes=change, deleted=deleted, warnings=warnings)

    def delete_ouvrage(self, ouvrage_id: int) -> MutationResult:
        with self._atomic():
            ouvrage, lot = self._require_ouvrage(None, ouvrage_id)
            deleted = self._delete_ouvrages([ouvrage_id])
            change = self.cascade.rollup(lot.id_projet, lot.id_projet_lot)
            self._commit(change)

        warnings = self._after_commit(change)
        self._emit(ChangeEvent(
            action=EventAction.OUVRAGE_SUPPRIME,
            id_projet=lot.id_projet,
            changed_fields={'id_ouvrage': ouvrage_id, 'deleted': deleted},
        ))
        return MutationResult(changes=change, deleted=deleted, warnings=warnings)

    def _delete_ouvrages(self, ouvrage_ids: list[int]) -> dict[str, int]:
        # Articles -> structures -> blocs -> ouvrages
        structure_ids = [
            s for (s,) in self.db.query(Structure.id_structure).filter(Structure.id_ouvrage.in_(ouvrage_ids))
        ]
        deleted = self._delete_structures(structure_ids)
        deleted['bloc'] = (
            self.db.query(Bloc).filter(Bloc.id_ouvrage.in_(ouvrage_ids)).delete(synchronize_session='fetch')
        )
        deleted['ouvrage'] = (
            self.db.query(Ouvrage).filter(Ouvrage.id_ouvrage.in_(ouvrage_ids)).delete(synchronize_session='fetch')
        )
        return deleted

    def delete_lot(self, projet_id: int, lot_id: int) -> MutationResult:
        with self._atomic():
            lot = self._require_lot(projet_id, lot_id)
            ouvrage_ids = [o for (o,) in self.db.query(Ouvrage.id_ouvrage).filter(Ouvrage.id_projet_lot == lot_id)]
            deleted = self._delete_ouvrages(ouvrage_ids) if ouvrage_ids else {}
            deleted['projet_lot'] = (
                self.db.query(ProjetLot).filter(ProjetLot.id_projet_lot == lot_id).delete(synchronize_session='fetch')
            )

            change = self.cascade.rollup(projet_id)
            self._commit(change)

        warnings = self._after_commit(change)
        self._emit(ChangeEvent(
            action=EventAction.LOT_SUPPRIME,
            id_projet=projet_id,
            changed_fields={'id_projet_lot': lot_id, 'deleted': deleted},
        ))
        return MutationResult(changes=change, deleted=deleted, warnings=warnings)

    def delete_projet(self, projet_id: int) -> MutationResult:
        """Supprime le projet et tout son arbre ; la nomenclature est conservée."""
        with self._atomic():
            self._require_projet(projet_id)
            lot_ids = [i for (i,) in self.db.query(ProjetLot.id_projet_lot).filter(ProjetLot.id_projet == projet_id)]
            ouvrage_ids = []
            if lot_ids:
                ouvrage_ids = [
                    o for (o,) in self.db.query(Ouvrage.id_ouvrage).filter(Ouvrage.id_projet_lot.in_(lot_ids))
                ]
            deleted = self._delete_ouvrages(ouvrage_ids) if ouvrage_ids else {}
            deleted['projet_lot'] = (
                self.db.query(ProjetLot).filter(ProjetLot.id_projet == projet_id).delete(synchronize_session='fetch')
            )
            deleted['evenement'] = evenement_crud.delete_evenements_by_projet(self.db, projet_id)
            deleted['projet'] = (
                self.db.query(Projet).filter(Projet.id_projet == projet_id).delete(synchronize_session='fetch')
            )
            self.db.commit()

        self.logger.info("Projet %s supprimé: %s", projet_id, deleted)
        self._emit(ChangeEvent(
            action=EventAction.PROJET_SUPPRIME,
            id_projet=projet_id,
            changed_fields={'deleted': deleted},
        ))
        return MutationResult(deleted=deleted)

    # --- Agrégat projet ------------------------------------------------------

    def get_project_aggregate(self, projet_id: int) -> dict[str, Any]:
        projet = self._require_projet(projet_id)
        return {'id_projet': projet.id_projet, 'prix_vente': projet.prix_vente}

    def refresh_project_aggregate(self, projet_id: int) -> dict[str, Any]:
        """Recalcule le prix de vente, par exemple après un avertissement AGGREGATE_RECOMPUTE_FAILED."""
        with self._atomic():
            self._require_projet(projet_id)
            prix_vente = self.cascade.run_project(projet_id)
            self.db.commit()
        return {'id_projet': projet_id, 'prix_vente': prix_vente}
