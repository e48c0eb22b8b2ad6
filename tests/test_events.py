import logging
from datetime import datetime

import pytest

from chiffrage.core.exceptions import StructuralNotFound
from chiffrage.crud import evenement as evenement_crud
from chiffrage.db.models import Evenement
from chiffrage.schemas.placement import PlacementCoordinates
from chiffrage.services.events import (
    ChangeEvent,
    DatabaseEventSink,
    EventAction,
    LoggingEventSink,
)
from chiffrage.services.placement import PlacementService


class BrokenSink:
    def emit(self, event):
        raise ConnectionError("bus indisponible")


def _place(service, projet, labels, **coordinates):
    coordinates.setdefault('nom_ouvrage', 'Distribution')
    return service.place_article(
        projet.id_projet, PlacementCoordinates(**coordinates), labels, quantite=10, prix_unitaire_ht=5, tva=20
    )


def test_one_event_per_operation(db, service, sink, projet, cable_labels):
    placed = _place(service, projet, cable_labels, nom_bloc="Tableau")
    article_id = placed.projet_article.id_projet_article
    service.update_placement(article_id, {'tva': 10})
    service.remove_placement(article_id)

    assert [event.action for event in sink.events] == [
        EventAction.ARTICLE_AJOUTE,
        EventAction.ARTICLE_MODIFIE,
        EventAction.ARTICLE_SUPPRIME,
    ]
    added = sink.events[0]
    assert added.id_projet == projet.id_projet
    assert added.id_projet_article == article_id
    assert added.changed_fields['id_niveau_6'] == placed.projet_article.id_niveau_6


def test_no_event_when_nothing_committed(service, sink):
    with pytest.raises(StructuralNotFound):
        service.remove_placement(404)

    assert sink.events == []


def test_failing_sink_does_not_break_the_mutation(db, projet, cable_labels, caplog):
    service = PlacementService(db, event_sink=BrokenSink(), defer_project_cascade=True)

    with caplog.at_level(logging.ERROR, logger='chiffrage.services.placement'):
        result = _place(service, projet, cable_labels)

    assert result.ok
    assert result.projet_article.id_projet_article is not None
    assert "projet_article_ajouter" in caplog.text


def test_database_sink_journals_events(db, session_factory, projet, cable_labels):
    service = PlacementService(db, event_sink=DatabaseEventSink(session_factory), defer_project_cascade=True)

    placed = _place(service, projet, cable_labels)

    evenement = db.query(Evenement).one()
    assert evenement.action == 'projet_article_ajouter'
    assert evenement.id_projet == projet.id_projet
    assert evenement.id_projet_article == placed.projet_article.id_projet_article
    assert evenement.champs['total_ttc'] == 60
    assert evenement.champs['id_structure'] == placed.projet_article.id_structure


def test_logging_sink(caplog):
    sink = LoggingEventSink()
    with caplog.at_level(logging.INFO, logger='chiffrage.services.events'):
        sink.emit(ChangeEvent(action=EventAction.BLOC_MODIFIE, id_projet=3, changed_fields={'pu': 15}))

    assert "bloc_modifier" in caplog.text
    assert "['pu']" in caplog.text


def test_projet_journal_is_newest_first(db):
    moment = datetime(2024, 3, 1, 8, 30)
    db.add_all([
        Evenement(action='lot_ajouter', id_projet=1, champs={}, created_at=datetime(2024, 2, 1)),
        Evenement(action='ouvrage_ajouter', id_projet=1, champs={}, created_at=moment),
        Evenement(action='bloc_ajouter', id_projet=1, champs={}, created_at=moment),
        Evenement(action='lot_ajouter', id_projet=2, champs={}, created_at=datetime(2024, 4, 1)),
    ])
    db.commit()

    journal = evenement_crud.get_evenements_by_projet(db, 1)

    assert [e.action for e in journal] == ['bloc_ajouter', 'ouvrage_ajouter', 'lot_ajouter']
    assert evenement_crud.get_evenements_by_projet(db, 1, skip=1, limit=1)[0].action == 'ouvrage_ajouter'
    assert evenement_crud.delete_evenements_by_projet(db, 1) == 3
    assert db.query(Evenement).count() == 1
