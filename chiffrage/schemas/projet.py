from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class ProjetBase(BaseModel):
    nom_projet: str


class ProjetCreate(ProjetBase):
    pass


class ProjetRead(ProjetBase):
    id_projet: int
    prix_vente: Decimal

    model_config = ConfigDict(from_attributes=True)


class ProjetAggregate(BaseModel):
    id_projet: int
    prix_vente: Decimal


class ArticleStructure(BaseModel):
    id_projet_article: int
    id_niveau_6: Optional[int]
    designation_article: Optional[str]
    quantite: Optional[Decimal]
    prix_unitaire_ht: Optional[Decimal]
    tva: Optional[Decimal]
    prix_total_ht: Optional[Decimal]
    total_ttc: Optional[Decimal]
    localisation: Optional[str]
    description: Optional[str]
    placeholder: bool


class BlocStructure(BaseModel):
    id_bloc: int
    nom_bloc: str
    designation: str
    unite: Optional[str]
    quantite: Optional[Decimal]
    pu: Optional[Decimal]
    pt: Decimal
    articles: List[ArticleStructure]


class OuvrageStructure(BaseModel):
    id_ouvrage: int
    nom_ouvrage: str
    designation: str
    prix_total: Decimal
    articles: List[ArticleStructure]
    blocs: List[BlocStructure]


class LotStructure(BaseModel):
    id_projet_lot: int
    numero_lot: int
    designation_lot: str
    prix_total: Decimal
    ouvrages: List[OuvrageStructure]


class ProjetStructure(BaseModel):
    id_projet: int
    nom_projet: str
    prix_vente: Decimal
    lots: List[LotStructure]
