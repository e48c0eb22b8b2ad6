import logging
from decimal import Decimal

import pytest
from sqlalchemy import func

from chiffrage.core.exceptions import InvalidName, LabelConflict, MissingHierarchyLevel, StructuralNotFound
from chiffrage.crud import projet as projet_crud
from chiffrage.db.models import (
    Bloc,
    Evenement,
    Niveau1,
    Niveau2,
    Niveau3,
    Niveau4,
    Niveau5,
    Niveau6,
    Ouvrage,
    ProjetArticle,
    ProjetLot,
    Structure,
)
from chiffrage.schemas.niveau import HierarchyLabels
from chiffrage.schemas.placement import PlacementCoordinates
from chiffrage.schemas.projet import ProjetCreate
from chiffrage.services.events import DatabaseEventSink, EventAction
from chiffrage.services.placement import PlacementService


def _place(service, projet, labels, quantite=10, prix=5, tva=20, **coordinates):
    coordinates.setdefault('nom_ouvrage', 'Distribution')
    return service.place_article(
        projet.id_projet,
        PlacementCoordinates(**coordinates),
        labels,
        quantite=quantite,
        prix_unitaire_ht=prix,
        tva=tva,
    )


def _count(db, model):
    return db.query(model).count()


def test_place_article_end_to_end(db, service, sink, projet, cable_labels):
    result = _place(service, projet, cable_labels)

    article = result.projet_article
    assert result.ok
    assert result.warnings == []
    assert article.prix_total_ht == Decimal('50')
    assert article.total_ttc == Decimal('60')

    for model in (Niveau1, Niveau2, Niveau3, Niveau6):
        assert _count(db, model) == 1
    assert _count(db, Niveau4) == 0
    assert _count(db, Niveau5) == 0

    lot = db.query(ProjetLot).one()
    ouvrage = db.query(Ouvrage).one()
    assert lot.designation_lot == "Lot 1: LotA"
    assert ouvrage.designation == "1.1"
    assert lot.prix_total == Decimal('60')
    assert ouvrage.prix_total == Decimal('60')

    db.refresh(projet)
    assert projet.prix_vente == Decimal('60')
    assert result.changes.prix_vente == Decimal('60')
    assert [event.action for event in sink.events] == [EventAction.ARTICLE_AJOUTE]


def test_same_path_reuses_nodes_and_structure(db, service, projet, cable_labels):
    first = _place(service, projet, cable_labels)
    second = _place(service, projet, cable_labels, quantite=1)

    assert first.projet_article.id_projet_article != second.projet_article.id_projet_article
    assert first.projet_article.id_structure == second.projet_article.id_structure
    assert _count(db, Niveau6) == 1
    assert _count(db, Structure) == 1
    db.refresh(projet)
    assert projet.prix_vente == Decimal('66')


def test_missing_level_leaves_nothing_behind(db, service, projet):
    labels = HierarchyLabels(niveau_1="Elec", niveau_2="LotA", niveau_6="Cable")

    with pytest.raises(MissingHierarchyLevel) as excinfo:
        _place(service, projet, labels)

    assert excinfo.value.missing == [3]
    assert _count(db, Niveau1) == 0
    assert _count(db, ProjetArticle) == 0


def test_cascade_failure_rolls_back_everything(db, service, projet, cable_labels, sink, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("cascade en panne")

    monkeypatch.setattr(service.cascade, 'run_structural', boom)

    with pytest.raises(RuntimeError):
        _place(service, projet, cable_labels)

    for model in (Niveau1, Niveau2, Niveau3, Niveau6, ProjetLot, Ouvrage, Structure, ProjetArticle):
        assert _count(db, model) == 0
    assert sink.events == []


def test_project_cascade_inside_transaction(db, sink, projet, cable_labels, monkeypatch):
    service = PlacementService(db, event_sink=sink, defer_project_cascade=False)

    result = _place(service, projet, cable_labels)
    assert result.changes.prix_vente == Decimal('60')

    def boom(*args, **kwargs):
        raise RuntimeError("prix de vente indisponible")

    monkeypatch.setattr(service.cascade, 'run_project', boom)
    with pytest.raises(RuntimeError):
        _place(service, projet, cable_labels, quantite=1)

    assert _count(db, ProjetArticle) == 1
    db.refresh(projet)
    assert projet.prix_vente == Decimal('60')


def test_deferred_failure_is_a_warning(db, service, sink, projet, cable_labels, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("prix de vente indisponible")

    monkeypatch.setattr(service.cascade, 'run_project', boom)

    result = _place(service, projet, cable_labels)

    assert result.ok
    assert result.warnings == ['AGGREGATE_RECOMPUTE_FAILED']
    assert _count(db, ProjetArticle) == 1
    assert db.query(Ouvrage).one().prix_total == Decimal('60')
    db.refresh(projet)
    assert projet.prix_vente == Decimal('0')
    assert len(sink.events) == 1

    healed = PlacementService(db).refresh_project_aggregate(projet.id_projet)
    assert healed['prix_vente'] == Decimal('60')


def test_update_placement_recomputes_totals(db, service, sink, projet, cable_labels):
    placed = _place(service, projet, cable_labels)

    result = service.update_placement(placed.projet_article.id_projet_article, {'quantite': 20, 'nom': 'ignoré'})

    assert result.projet_article.prix_total_ht == Decimal('100')
    assert result.projet_article.total_ttc == Decimal('120')
    assert result.changes.ouvrage_prix_total == Decimal('120')
    assert result.changes.prix_vente == Decimal('120')
    event = sink.events[-1]
    assert event.action == EventAction.ARTICLE_MODIFIE
    assert set(event.changed_fields) == {'quantite', 'prix_total_ht', 'total_ttc'}


def test_update_unknown_article(service):
    with pytest.raises(StructuralNotFound):
        service.update_placement(999, {'quantite': 1})


def test_remove_placement_zeroes_aggregates(db, service, sink, projet, cable_labels):
    placed = _place(service, projet, cable_labels)

    result = service.remove_placement(placed.projet_article.id_projet_article)

    assert result.ok
    assert result.deleted == {'projet_article': 1}
    assert _count(db, ProjetArticle) == 0
    assert db.query(Ouvrage).one().prix_total == Decimal('0')
    assert db.query(ProjetLot).one().prix_total == Decimal('0')
    db.refresh(projet)
    assert projet.prix_vente == Decimal('0')
    assert sink.events[-1].action == EventAction.ARTICLE_SUPPRIME


def test_new_ouvrage_gets_placeholder_then_filled(db, service, projet, cable_labels):
    niveau_2 = service.resolver.resolve_path(cable_labels).niveau_2
    lot = service.create_lot(projet.id_projet, niveau_2).entity

    created = service.create_ouvrage(projet.id_projet, lot.id_projet_lot, "Éclairage")
    ouvrage = created.entity
    placeholder = db.query(ProjetArticle).one()
    assert placeholder.is_placeholder

    result = _place(service, projet, cable_labels, id_ouvrage=ouvrage.id_ouvrage)

    assert result.projet_article.id_projet_article == placeholder.id_projet_article
    assert not result.projet_article.is_placeholder
    assert _count(db, ProjetArticle) == 1
    assert db.query(Ouvrage).one().prix_total == Decimal('60')


def test_place_with_explicit_leaf(db, service, projet, cable_labels):
    leaf_id = service.resolver.resolve(cable_labels)
    db.commit()

    result = _place(service, projet, leaf_id)

    assert result.projet_article.id_niveau_6 == leaf_id
    assert db.query(ProjetLot).one().designation_lot == "Lot 1: LotA"


def test_unknown_leaf(service, projet):
    with pytest.raises(StructuralNotFound):
        _place(service, projet, 4242)


def test_ouvrage_of_another_project(db, service, projet, cable_labels):
    placed = _place(service, projet, cable_labels)
    ouvrage_id = db.get(Structure, placed.projet_article.id_structure).id_ouvrage
    other = projet_crud.create_projet(db, ProjetCreate(nom_projet="Autre chantier"))

    with pytest.raises(StructuralNotFound):
        _place(service, other, cable_labels, id_ouvrage=ouvrage_id)
    assert _count(db, ProjetArticle) == 1


def test_bloc_unit_price_follows_quantity(db, service, sink, projet, cable_labels):
    _place(service, projet, cable_labels, nom_bloc="Tableau", unite_bloc="u", quantite_bloc=2)
    bloc = db.query(Bloc).one()
    assert bloc.pt == Decimal('60')
    assert bloc.pu == Decimal('30')

    result = service.update_bloc(bloc.id_bloc, {'quantite': 4})

    assert result.entity.pu == Decimal('15')
    assert sink.events[-1].action == EventAction.BLOC_MODIFIE


def test_delete_bloc_keeps_ouvrage(db, service, projet, cable_labels):
    _place(service, projet, cable_labels, nom_bloc="Tableau")
    _place(service, projet, cable_labels, prix=1)
    bloc = db.query(Bloc).one()

    result = service.delete_bloc(bloc.id_bloc)

    assert result.deleted == {'projet_article': 1, 'structure': 1, 'bloc': 1}
    ouvrage = db.query(Ouvrage).one()
    assert ouvrage.prix_total == Decimal('12')
    db.refresh(projet)
    assert projet.prix_vente == Decimal('12')


def test_delete_ouvrage(db, service, projet, cable_labels):
    placed = _place(service, projet, cable_labels, nom_bloc="Tableau")
    ouvrage_id = db.get(Structure, placed.projet_article.id_structure).id_ouvrage

    result = service.delete_ouvrage(ouvrage_id)

    assert result.deleted == {'projet_article': 1, 'structure': 1, 'bloc': 1, 'ouvrage': 1}
    assert db.query(ProjetLot).one().prix_total == Decimal('0')


def test_delete_lot(db, service, sink, projet, cable_labels):
    _place(service, projet, cable_labels)
    lot = db.query(ProjetLot).one()

    result = service.delete_lot(projet.id_projet, lot.id_projet_lot)

    assert result.deleted['projet_lot'] == 1
    assert result.deleted['ouvrage'] == 1
    assert _count(db, ProjetArticle) == 0
    # La nomenclature n'appartient pas au projet
    assert _count(db, Niveau6) == 1
    db.refresh(projet)
    assert projet.prix_vente == Decimal('0')
    assert sink.events[-1].action == EventAction.LOT_SUPPRIME


def test_delete_lot_of_another_project(db, service, projet, cable_labels):
    _place(service, projet, cable_labels)
    lot = db.query(ProjetLot).one()
    other = projet_crud.create_projet(db, ProjetCreate(nom_projet="Autre chantier"))

    with pytest.raises(StructuralNotFound):
        service.delete_lot(other.id_projet, lot.id_projet_lot)


def test_project_total_matches_line_items(db, service, projet, labels_factory):
    _place(service, projet, labels_factory("Cable 3x2.5"), quantite=3, prix=12.5, tva=20)
    _place(service, projet, labels_factory("Gaine ICTA", niveau_4="Conduits"), quantite=7, prix=1.99, tva=5.5)
    _place(
        service, projet, labels_factory("Dalle", niveau_2="LotB"),
        quantite=2.5, prix=80, tva=10, nom_ouvrage="Sols", nom_bloc="RDC", quantite_bloc=3,
    )
    _place(service, projet, labels_factory("Cable 3x2.5"), quantite=None, prix=4)

    expected = db.query(func.sum(ProjetArticle.total_ttc)).scalar()

    db.refresh(projet)
    assert Decimal(str(projet.prix_vente)) == Decimal(str(expected)).quantize(Decimal('0.01'))
    assert _count(db, ProjetLot) == 2
    designations = sorted(lot.designation_lot for lot in db.query(ProjetLot))
    assert designations == ["Lot 1: LotA", "Lot 2: LotB"]


@pytest.fixture
def lot(service, projet, cable_labels):
    niveau_2 = service.resolver.resolve_path(cable_labels).niveau_2
    return service.create_lot(projet.id_projet, niveau_2).entity


@pytest.mark.parametrize("nom", ["", "   ", "\t\n"])
def test_blank_ouvrage_name_is_rejected(db, service, sink, projet, lot, nom, caplog):
    caplog.set_level(logging.INFO, logger="chiffrage")
    sink.events.clear()

    with pytest.raises(InvalidName) as excinfo:
        service.create_ouvrage(projet.id_projet, lot.id_projet_lot, nom)

    assert excinfo.value.entity == 'ouvrage'
    assert _count(db, Ouvrage) == 0
    assert "Création concurrente" not in caplog.text
    assert sink.events == []


def test_blank_bloc_name_is_rejected(db, service, projet, lot, caplog):
    caplog.set_level(logging.INFO, logger="chiffrage")
    ouvrage = service.create_ouvrage(projet.id_projet, lot.id_projet_lot, "Distribution").entity

    with pytest.raises(InvalidName) as excinfo:
        service.create_bloc(ouvrage.id_ouvrage, "  ")

    assert excinfo.value.entity == 'bloc'
    assert _count(db, Bloc) == 0
    assert "Création concurrente" not in caplog.text


def test_update_bloc_rejects_blank_name(db, service, projet, lot):
    ouvrage = service.create_ouvrage(projet.id_projet, lot.id_projet_lot, "Distribution").entity
    bloc = service.create_bloc(ouvrage.id_ouvrage, "TGBT").entity

    with pytest.raises(InvalidName):
        service.update_bloc(bloc.id_bloc, {'nom_bloc': ' '})

    assert db.get(Bloc, bloc.id_bloc).nom_bloc == "TGBT"


def test_update_ouvrage_renames_and_checks_siblings(db, service, sink, projet, lot):
    first = service.create_ouvrage(projet.id_projet, lot.id_projet_lot, "Distribution").entity
    service.create_ouvrage(projet.id_projet, lot.id_projet_lot, "Éclairage")

    result = service.update_ouvrage(first.id_ouvrage, {'nom_ouvrage': "Distribution TGBT", 'designation': "1.A"})

    assert result.entity.nom_ouvrage == "Distribution TGBT"
    assert result.entity.nom_key == "distribution tgbt"
    assert result.entity.designation == "1.A"
    event = sink.events[-1]
    assert event.action == EventAction.OUVRAGE_MODIFIE
    assert event.changed_fields['nom_ouvrage'] == {'old': "Distribution", 'new': "Distribution TGBT"}

    with pytest.raises(LabelConflict):
        service.update_ouvrage(first.id_ouvrage, {'nom_ouvrage': "eclairage"})
    assert db.get(Ouvrage, first.id_ouvrage).nom_ouvrage == "Distribution TGBT"

    with pytest.raises(InvalidName):
        service.update_ouvrage(first.id_ouvrage, {'nom_ouvrage': ""})


def test_update_ouvrage_without_change_emits_nothing(service, sink, projet, lot):
    ouvrage = service.create_ouvrage(projet.id_projet, lot.id_projet_lot, "Distribution").entity
    sink.events.clear()

    service.update_ouvrage(ouvrage.id_ouvrage, {'nom_ouvrage': " Distribution "})

    assert sink.events == []


def test_update_lot_designation(db, service, sink, projet, lot):
    result = service.update_lot(projet.id_projet, lot.id_projet_lot, {'designation_lot': "Lot 1: Courants forts"})

    assert result.entity.designation_lot == "Lot 1: Courants forts"
    assert result.entity.numero_lot == 1
    event = sink.events[-1]
    assert event.action == EventAction.LOT_MODIFIE
    assert event.changed_fields['designation_lot']['old'] == "Lot 1: LotA"

    with pytest.raises(InvalidName):
        service.update_lot(projet.id_projet, lot.id_projet_lot, {'designation_lot': "  "})
    other = projet_crud.create_projet(db, ProjetCreate(nom_projet="Autre chantier"))
    with pytest.raises(StructuralNotFound):
        service.update_lot(other.id_projet, lot.id_projet_lot, {'designation_lot': "Lot X"})


def test_delete_projet_removes_the_whole_tree(db, session_factory, projet, cable_labels):
    journal = DatabaseEventSink(session_factory)
    service = PlacementService(db, event_sink=journal, defer_project_cascade=True)
    _place(service, projet, cable_labels, nom_bloc="Tableau")
    _place(service, projet, cable_labels)
    other = projet_crud.create_projet(db, ProjetCreate(nom_projet="Autre chantier"))
    _place(service, other, cable_labels)
    assert db.query(Evenement).filter(Evenement.id_projet == projet.id_projet).count() == 2

    result = service.delete_projet(projet.id_projet)

    assert result.deleted['projet'] == 1
    assert result.deleted['projet_lot'] == 1
    assert result.deleted['ouvrage'] == 1
    assert result.deleted['bloc'] == 1
    assert result.deleted['projet_article'] == 2
    assert result.deleted['evenement'] == 2
    assert projet_crud.get_projet(db, projet.id_projet) is None
    # L'autre projet et la nomenclature sont intacts
    assert _count(db, ProjetLot) == 1
    assert _count(db, ProjetArticle) == 1
    assert _count(db, Niveau6) == 1
    actions = [e.action for e in db.query(Evenement).filter(Evenement.id_projet == projet.id_projet)]
    assert actions == ['projet_supprimer']


def test_delete_projet_without_lots(db, service, sink, projet):
    result = service.delete_projet(projet.id_projet)

    assert result.deleted == {'projet_lot': 0, 'evenement': 0, 'projet': 1}
    assert sink.events[-1].action == EventAction.PROJET_SUPPRIME

    with pytest.raises(StructuralNotFound):
        service.delete_projet(projet.id_projet)
