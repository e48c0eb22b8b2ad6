"""
Événements de modification émis après un commit réussi.

Le service de placement reçoit un ``EventSink`` à la construction ; la
diffusion (websocket, file de messages...) reste à la charge de l'appelant.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Callable, Optional, Protocol
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from chiffrage.db.models import Evenement


class EventAction(StrEnum):
    ARTICLE_AJOUTE = 'projet_article_ajouter'
    ARTICLE_MODIFIE = 'projet_article_modifier'
    ARTICLE_SUPPRIME = 'projet_article_supprimer'
    OUVRAGE_AJOUTE = 'ouvrage_ajouter'
    OUVRAGE_MODIFIE = 'ouvrage_modifier'
    OUVRAGE_SUPPRIME = 'ouvrage_supprimer'
    BLOC_AJOUTE = 'bloc_ajouter'
    BLOC_MODIFIE = 'bloc_modifier'
    BLOC_SUPPRIME = 'bloc_supprimer'
    LOT_AJOUTE = 'lot_ajouter'
    LOT_MODIFIE = 'lot_modifier'
    LOT_SUPPRIME = 'lot_supprimer'
    PROJET_SUPPRIME = 'projet_supprimer'


@dataclass(frozen=True)
class ChangeEvent:
    action: EventAction
    id_projet: Optional[int]
    id_projet_article: Optional[int] = None
    changed_fields: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class EventSink(Protocol):
    def emit(self, event: ChangeEvent) -> None:
        ...


class NullEventSink:
    def emit(self, event: ChangeEvent) -> None:
        return None


class LoggingEventSink:
    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def emit(self, event: ChangeEvent) -> None:
        self.logger.info(
            "Événement %s projet=%s article=%s champs=%s",
            event.action, event.id_projet, event.id_projet_article, sorted(event.changed_fields),
        )


class DatabaseEventSink:
    """Journalise les événements dans la table ``evenements``, dans sa propre session."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def emit(self, event: ChangeEvent) -> None:
        with self.session_factory() as db:
            db.add(Evenement(
                action=str(event.action),
                id_projet=event.id_projet,
                id_projet_article=event.id_projet_article,
                champs=jsonable_encoder(event.changed_fields),
                created_at=event.occurred_at.replace(tzinfo=None),
            ))
            db.commit()


class CollectingEventSink:
    """Garde les événements en mémoire ; utile pour les scripts et les tests."""

    def __init__(self):
        self.events: list[ChangeEvent] = []

    def emit(self, event: ChangeEvent) -> None:
        self.events.append(event)
