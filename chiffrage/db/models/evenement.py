from datetime import datetime
from typing import Any
from sqlalchemy import Integer, String, DateTime, JSON, func
from sqlalchemy.orm import Mapped, mapped_column
from chiffrage.db.base import Base


class Evenement(Base):
    __tablename__ = 'evenements'

    id_evenement: Mapped[int] = mapped_column(Integer, primary_key=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    id_projet: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # Pas de clé étrangère : l'article a pu être supprimé depuis
    id_projet_article: Mapped[int | None] = mapped_column(Integer, nullable=True)
    champs: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, server_default=func.now())
