from typing import Generator
from fastapi import Depends
from sqlalchemy.orm import Session

from chiffrage.db.session import SessionLocal
from chiffrage.services.events import DatabaseEventSink, EventSink
from chiffrage.services.placement import PlacementService


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_event_sink() -> EventSink:
    return DatabaseEventSink(SessionLocal)


def get_placement_service(
    db: Session = Depends(get_db),
    event_sink: EventSink = Depends(get_event_sink),
) -> PlacementService:
    return PlacementService(db, event_sink=event_sink)
