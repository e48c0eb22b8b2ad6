from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Classe racine ORM, tous les modèles y sont enregistrés."""
    pass
