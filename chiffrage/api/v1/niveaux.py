from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.orm import Session

from chiffrage.api.deps import get_db
from chiffrage.crud import niveau as crud
from chiffrage.schemas.niveau import NiveauNode, NiveauRead, NiveauRename, ResolveRequest, ResolveResponse
from chiffrage.services.hierarchy import HierarchyResolver

router = APIRouter(prefix='/niveaux', tags=['niveaux'])

Level = Annotated[int, Path(ge=1, le=6)]


@router.post('/resolve', response_model=ResolveResponse)
def resolve_niveaux(payload: ResolveRequest, db: Session = Depends(get_db)):
    """Trouve ou crée le chemin de nomenclature et retourne la feuille de niveau 6."""
    leaf_id = HierarchyResolver(db).resolve(payload.labels, payload.id_niveau_6)
    db.commit()
    return ResolveResponse(id_niveau_6=leaf_id)


@router.get('/', response_model=list[NiveauNode])
def read_catalog_tree(db: Session = Depends(get_db)):
    return crud.get_catalog_tree(db)


@router.get('/{level}', response_model=list[NiveauRead])
def read_niveaux(level: Level, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return [NiveauRead.from_row(row) for row in crud.get_niveaux(db, level, skip, limit)]


@router.get('/{level}/{niveau_id}', response_model=NiveauRead)
def read_niveau(level: Level, niveau_id: int, db: Session = Depends(get_db)):
    obj = crud.get_niveau(db, level, niveau_id)
    if not obj:
        raise HTTPException(status_code=404, detail='Niveau not found')
    return NiveauRead.from_row(obj)


@router.get('/{level}/{niveau_id}/children', response_model=list[NiveauRead])
def read_niveau_children(level: Level, niveau_id: int, db: Session = Depends(get_db)):
    if not crud.get_niveau(db, level, niveau_id):
        raise HTTPException(status_code=404, detail='Niveau not found')
    return [NiveauRead.from_row(row) for row in crud.get_niveau_children(db, level, niveau_id)]


@router.patch('/{level}/{niveau_id}', response_model=NiveauRead)
def rename_niveau(level: Level, niveau_id: int, payload: NiveauRename, db: Session = Depends(get_db)):
    return NiveauRead.from_row(crud.rename_niveau(db, level, niveau_id, payload.label))
