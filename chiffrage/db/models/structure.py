from enum import Enum as PyEnum
from typing import Optional
from sqlalchemy import Integer, Enum, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from chiffrage.db.base import Base


class StructureKind(PyEnum):
    ouvrage_seul = 'ouvrage_seul'
    dans_bloc = 'dans_bloc'


class Structure(Base):
    __tablename__ = 'structure'
    # Une seule structure par (ouvrage, bloc), bloc NULL compris
    __table_args__ = (
        Index(
            'uq_structure_ouvrage_bloc', 'id_ouvrage', 'id_bloc', unique=True,
            sqlite_where=text('id_bloc IS NOT NULL'),
            postgresql_where=text('id_bloc IS NOT NULL'),
        ),
        Index(
            'uq_structure_ouvrage_seul', 'id_ouvrage', unique=True,
            sqlite_where=text('id_bloc IS NULL'),
            postgresql_where=text('id_bloc IS NULL'),
        ),
    )

    id_structure: Mapped[int] = mapped_column(Integer, primary_key=True)
    id_ouvrage: Mapped[int] = mapped_column(ForeignKey('ouvrage.id_ouvrage'), nullable=False)
    id_bloc: Mapped[int | None] = mapped_column(ForeignKey('bloc.id_bloc'), nullable=True)
    action: Mapped[StructureKind] = mapped_column(Enum(StructureKind), nullable=False)

    ouvrage: Mapped['Ouvrage'] = relationship('Ouvrage', back_populates='structures')
    bloc: Mapped[Optional['Bloc']] = relationship('Bloc')
    articles: Mapped[list['ProjetArticle']] = relationship('ProjetArticle', back_populates='structure', order_by='ProjetArticle.id_projet_article')
