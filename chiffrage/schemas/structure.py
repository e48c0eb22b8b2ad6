from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict


class LotCreate(BaseModel):
    id_niveau_2: int


class LotUpdate(BaseModel):
    designation_lot: Optional[str] = None


class LotRead(BaseModel):
    id_projet_lot: int
    id_projet: int
    id_niveau_2: int
    numero_lot: int
    designation_lot: str
    prix_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class OuvrageCreate(BaseModel):
    nom_ouvrage: str
    nom_bloc: Optional[str] = None
    unite_bloc: Optional[str] = None
    quantite_bloc: Optional[Decimal] = None


class OuvrageUpdate(BaseModel):
    nom_ouvrage: Optional[str] = None
    designation: Optional[str] = None


class OuvrageRead(BaseModel):
    id_ouvrage: int
    id_projet_lot: int
    nom_ouvrage: str
    designation: str
    prix_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class BlocCreate(BaseModel):
    nom_bloc: str
    unite: Optional[str] = None
    quantite: Optional[Decimal] = None


class BlocUpdate(BaseModel):
    nom_bloc: Optional[str] = None
    unite: Optional[str] = None
    quantite: Optional[Decimal] = None


class BlocRead(BaseModel):
    id_bloc: int
    id_ouvrage: int
    nom_bloc: str
    designation: str
    unite: Optional[str]
    quantite: Optional[Decimal]
    pu: Optional[Decimal]
    pt: Decimal

    model_config = ConfigDict(from_attributes=True)
