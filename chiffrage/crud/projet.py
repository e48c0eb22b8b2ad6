from sqlalchemy.orm import Session
from chiffrage.db.models import Projet
from chiffrage.schemas.projet import ProjetCreate


def get_projet(db: Session, projet_id: int) -> Projet | None:
    return db.query(Projet).filter(Projet.id_projet == projet_id).first()


def get_projets(db: Session, skip: int = 0, limit: int = 100) -> list[Projet]:
    return db.query(Projet).order_by(Projet.id_projet).offset(skip).limit(limit).all()


def create_projet(db: Session, projet: ProjetCreate) -> Projet:
    db_projet = Projet(**projet.model_dump())
    db.add(db_projet)
    db.commit()
    db.refresh(db_projet)
    return db_projet
