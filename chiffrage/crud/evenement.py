from sqlalchemy.orm import Session
from chiffrage.db.models import Evenement


def get_evenements_by_projet(db: Session, projet_id: int, skip: int = 0, limit: int = 100) -> list[Evenement]:
    """Journal d'un projet, le plus récent d'abord."""
    return (
        db.query(Evenement)
        .filter(Evenement.id_projet == projet_id)
        .order_by(Evenement.created_at.desc(), Evenement.id_evenement.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def delete_evenements_by_projet(db: Session, projet_id: int) -> int:
    return (
        db.query(Evenement)
        .filter(Evenement.id_projet == projet_id)
        .delete(synchronize_session='fetch')
    )
