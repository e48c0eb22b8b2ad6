from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, model_validator

from chiffrage.schemas.niveau import HierarchyLabels


class PlacementCoordinates(BaseModel):
    """
    Position de l'article dans l'arbre du projet : une structure existante,
    un ouvrage existant (et éventuellement un bloc), ou des noms d'ouvrage et
    de bloc à trouver ou créer dans le lot du niveau 2.
    """

    id_structure: Optional[int] = None
    id_ouvrage: Optional[int] = None
    id_bloc: Optional[int] = None
    nom_ouvrage: Optional[str] = None
    nom_bloc: Optional[str] = None
    unite_bloc: Optional[str] = None
    quantite_bloc: Optional[Decimal] = None

    @model_validator(mode='after')
    def check_target(self):
        if self.id_structure is None and self.id_ouvrage is None and not (self.nom_ouvrage or '').strip():
            raise ValueError("id_structure, id_ouvrage ou nom_ouvrage est requis")
        return self


class ArticleFields(BaseModel):
    quantite: Optional[Decimal] = None
    prix_unitaire_ht: Optional[Decimal] = None
    tva: Optional[Decimal] = None
    localisation: Optional[str] = None
    description: Optional[str] = None
    designation_article: Optional[str] = None


class PlacementCreate(ArticleFields):
    coordinates: PlacementCoordinates
    labels: Optional[HierarchyLabels] = None
    id_niveau_6: Optional[int] = None

    @model_validator(mode='after')
    def check_catalog(self):
        if self.labels is None and self.id_niveau_6 is None:
            raise ValueError("labels ou id_niveau_6 est requis")
        return self


class PlacementUpdate(ArticleFields):
    pass


class ProjetArticleRead(BaseModel):
    id_projet_article: int
    id_structure: int
    id_niveau_6: Optional[int]
    quantite: Optional[Decimal]
    prix_unitaire_ht: Optional[Decimal]
    tva: Optional[Decimal]
    prix_total_ht: Optional[Decimal]
    total_ttc: Optional[Decimal]
    localisation: Optional[str]
    description: Optional[str]
    designation_article: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class MutationResultRead(BaseModel):
    ok: bool
    projet_article: Optional[ProjetArticleRead] = None
    changes: dict[str, Any] = {}
    warnings: list[str] = []

    @classmethod
    def from_result(cls, result) -> "MutationResultRead":
        changes = result.changes.as_dict() if result.changes is not None else {}
        if result.deleted:
            changes['deleted'] = dict(result.deleted)
        article = result.projet_article
        return cls(
            ok=result.ok,
            projet_article=ProjetArticleRead.model_validate(article) if article is not None else None,
            changes=changes,
            warnings=list(result.warnings),
        )
