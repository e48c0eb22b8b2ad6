from decimal import Decimal
from sqlalchemy import Integer, String, Text, Numeric, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from chiffrage.db.base import Base


class ProjetArticle(Base):
    """Ligne chiffrée. ``id_niveau_6`` NULL : emplacement réservé (placeholder)."""

    __tablename__ = 'projet_article'

    id_projet_article: Mapped[int] = mapped_column(Integer, primary_key=True)
    id_structure: Mapped[int] = mapped_column(ForeignKey('structure.id_structure'), nullable=False)
    id_niveau_6: Mapped[int | None] = mapped_column(ForeignKey('niveau_6.id_niveau_6'), nullable=True)
    quantite: Mapped[Decimal | None] = mapped_column(Numeric(12, 3), nullable=True)
    prix_unitaire_ht: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    tva: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    prix_total_ht: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    total_ttc: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    localisation: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    designation_article: Mapped[str | None] = mapped_column(String(255), nullable=True)

    structure: Mapped['Structure'] = relationship('Structure', back_populates='articles')

    @property
    def is_placeholder(self) -> bool:
        return self.id_niveau_6 is None
