from decimal import Decimal
from sqlalchemy import Integer, String, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship
from chiffrage.db.base import Base


class Projet(Base):
    __tablename__ = 'projets'

    id_projet: Mapped[int] = mapped_column(Integer, primary_key=True)
    nom_projet: Mapped[str] = mapped_column(String(255), nullable=False)
    # Somme des total_ttc de tous les articles du projet
    prix_vente: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal('0'))

    lots: Mapped[list['ProjetLot']] = relationship('ProjetLot', back_populates='projet', order_by='ProjetLot.numero_lot')
