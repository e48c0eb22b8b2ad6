from typing import ClassVar
from sqlalchemy import Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from chiffrage.db.base import Base


class NiveauMixin:
    """
    Colonnes communes aux six niveaux de la nomenclature.

    ``label_key`` est le libellé normalisé, ``scope_key`` encode les parents
    (``"3:12;4:-;5:-"``). La contrainte unique sur le couple garantit un seul
    nœud par libellé et par parent, parents absents compris.
    """

    level: ClassVar[int]
    parent_levels: ClassVar[tuple[int, ...]] = ()

    label: Mapped[str] = mapped_column(String(255), nullable=False)
    label_key: Mapped[str] = mapped_column(String(255), nullable=False)
    scope_key: Mapped[str] = mapped_column(String(64), nullable=False, default='')

    @property
    def pk(self) -> int:
        return getattr(self, f'id_niveau_{self.level}')

    def parent_id(self, level: int) -> int | None:
        return getattr(self, f'id_niv_{level}', None)


class Niveau1(NiveauMixin, Base):
    __tablename__ = 'niveau_1'
    __table_args__ = (UniqueConstraint('scope_key', 'label_key', name='uq_niveau_1_label'),)
    level = 1

    id_niveau_1: Mapped[int] = mapped_column(Integer, primary_key=True)


class Niveau2(NiveauMixin, Base):
    __tablename__ = 'niveau_2'
    __table_args__ = (UniqueConstraint('scope_key', 'label_key', name='uq_niveau_2_label'),)
    level = 2
    parent_levels = (1,)

    id_niveau_2: Mapped[int] = mapped_column(Integer, primary_key=True)
    id_niv_1: Mapped[int] = mapped_column(ForeignKey('niveau_1.id_niveau_1'), nullable=False)


class Niveau3(NiveauMixin, Base):
    __tablename__ = 'niveau_3'
    __table_args__ = (UniqueConstraint('scope_key', 'label_key', name='uq_niveau_3_label'),)
    level = 3
    parent_levels = (2,)

    id_niveau_3: Mapped[int] = mapped_column(Integer, primary_key=True)
    id_niv_2: Mapped[int] = mapped_column(ForeignKey('niveau_2.id_niveau_2'), nullable=False)


class Niveau4(NiveauMixin, Base):
    __tablename__ = 'niveau_4'
    __table_args__ = (UniqueConstraint('scope_key', 'label_key', name='uq_niveau_4_label'),)
    level = 4
    parent_levels = (3,)

    id_niveau_4: Mapped[int] = mapped_column(Integer, primary_key=True)
    id_niv_3: Mapped[int] = mapped_column(ForeignKey('niveau_3.id_niveau_3'), nullable=False)


class Niveau5(NiveauMixin, Base):
    __tablename__ = 'niveau_5'
    __table_args__ = (UniqueConstraint('scope_key', 'label_key', name='uq_niveau_5_label'),)
    level = 5
    parent_levels = (3, 4)

    id_niveau_5: Mapped[int] = mapped_column(Integer, primary_key=True)
    id_niv_3: Mapped[int] = mapped_column(ForeignKey('niveau_3.id_niveau_3'), nullable=False)
    id_niv_4: Mapped[int | None] = mapped_column(ForeignKey('niveau_4.id_niveau_4'), nullable=True)


class Niveau6(NiveauMixin, Base):
    __tablename__ = 'niveau_6'
    __table_args__ = (UniqueConstraint('scope_key', 'label_key', name='uq_niveau_6_label'),)
    level = 6
    parent_levels = (3, 4, 5)

    id_niveau_6: Mapped[int] = mapped_column(Integer, primary_key=True)
    id_niv_3: Mapped[int] = mapped_column(ForeignKey('niveau_3.id_niveau_3'), nullable=False)
    id_niv_4: Mapped[int | None] = mapped_column(ForeignKey('niveau_4.id_niveau_4'), nullable=True)
    id_niv_5: Mapped[int | None] = mapped_column(ForeignKey('niveau_5.id_niveau_5'), nullable=True)


NIVEAU_MODELS: dict[int, type[NiveauMixin]] = {
    1: Niveau1,
    2: Niveau2,
    3: Niveau3,
    4: Niveau4,
    5: Niveau5,
    6: Niveau6,
}
