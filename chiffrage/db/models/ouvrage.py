from decimal import Decimal
from sqlalchemy import Integer, String, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from chiffrage.db.base import Base


class Ouvrage(Base):
    __tablename__ = 'ouvrage'
    __table_args__ = (UniqueConstraint('id_projet_lot', 'nom_key', name='uq_ouvrage_nom'),)

    id_ouvrage: Mapped[int] = mapped_column(Integer, primary_key=True)
    id_projet_lot: Mapped[int] = mapped_column(ForeignKey('projet_lot.id_projet_lot'), nullable=False)
    nom_ouvrage: Mapped[str] = mapped_column(String(255), nullable=False)
    nom_key: Mapped[str] = mapped_column(String(255), nullable=False)
    designation: Mapped[str] = mapped_column(String(50), nullable=False)
    prix_total: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal('0'))

    lot: Mapped['ProjetLot'] = relationship('ProjetLot', back_populates='ouvrages')
    blocs: Mapped[list['Bloc']] = relationship('Bloc', back_populates='ouvrage', order_by='Bloc.id_bloc')
    structures: Mapped[list['Structure']] = relationship('Structure', back_populates='ouvrage')
