from decimal import Decimal
from sqlalchemy import Integer, String, Numeric, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from chiffrage.db.base import Base


class Bloc(Base):
    __tablename__ = 'bloc'
    __table_args__ = (UniqueConstraint('id_ouvrage', 'nom_key', name='uq_bloc_nom'),)

    id_bloc: Mapped[int] = mapped_column(Integer, primary_key=True)
    id_ouvrage: Mapped[int] = mapped_column(ForeignKey('ouvrage.id_ouvrage'), nullable=False)
    nom_bloc: Mapped[str] = mapped_column(String(255), nullable=False)
    nom_key: Mapped[str] = mapped_column(String(255), nullable=False)
    designation: Mapped[str] = mapped_column(String(50), nullable=False)
    unite: Mapped[str | None] = mapped_column(String(20), nullable=True)
    quantite: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    # pt : sous-total TTC du bloc, pu : pt / quantite
    pu: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    pt: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal('0'))

    ouvrage: Mapped['Ouvrage'] = relationship('Ouvrage', back_populates='blocs')
