from typing import Optional
from pydantic import BaseModel, field_validator

from chiffrage.core.normalization import clean_label


class HierarchyLabels(BaseModel):
    """Libellés d'un chemin de nomenclature ; un libellé vide vaut absent."""

    niveau_1: Optional[str] = None
    niveau_2: Optional[str] = None
    niveau_3: Optional[str] = None
    niveau_4: Optional[str] = None
    niveau_5: Optional[str] = None
    niveau_6: Optional[str] = None

    @field_validator('*', mode='before')
    @classmethod
    def blank_as_none(cls, value):
        if value is None:
            return None
        return clean_label(str(value))

    def label(self, level: int) -> Optional[str]:
        return getattr(self, f'niveau_{level}')


class ResolveRequest(BaseModel):
    labels: Optional[HierarchyLabels] = None
    id_niveau_6: Optional[int] = None


class ResolveResponse(BaseModel):
    id_niveau_6: int


class NiveauRead(BaseModel):
    level: int
    id: int
    label: str

    @classmethod
    def from_row(cls, row) -> "NiveauRead":
        return cls(level=row.level, id=row.pk, label=row.label)


class NiveauRename(BaseModel):
    label: str


class NiveauNode(BaseModel):
    level: int
    id: int
    label: str
    children: list['NiveauNode'] = []


NiveauNode.model_rebuild()
