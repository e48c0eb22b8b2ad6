from decimal import Decimal
from sqlalchemy import Integer, String, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from chiffrage.db.base import Base
from chiffrage.db.models.niveau import Niveau2


class ProjetLot(Base):
    __tablename__ = 'projet_lot'
    __table_args__ = (UniqueConstraint('id_projet', 'id_niveau_2', name='uq_projet_lot_niveau_2'),)

    id_projet_lot: Mapped[int] = mapped_column(Integer, primary_key=True)
    id_projet: Mapped[int] = mapped_column(ForeignKey('projets.id_projet'), nullable=False)
    id_niveau_2: Mapped[int] = mapped_column(ForeignKey('niveau_2.id_niveau_2'), nullable=False)
    numero_lot: Mapped[int] = mapped_column(Integer, nullable=False)
    designation_lot: Mapped[str] = mapped_column(String(255), nullable=False)
    prix_total: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal('0'))

    projet: Mapped['Projet'] = relationship('Projet', back_populates='lots')
    niveau_2: Mapped[Niveau2] = relationship(Niveau2)
    ouvrages: Mapped[list['Ouvrage']] = relationship('Ouvrage', back_populates='lot', order_by='Ouvrage.id_ouvrage')
