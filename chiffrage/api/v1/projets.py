from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from chiffrage.api.deps import get_db, get_placement_service
from chiffrage.crud import projet as crud
from chiffrage.crud.evenement import get_evenements_by_projet
from chiffrage.crud.structure import get_projet_structure
from chiffrage.schemas.evenement import EvenementRead
from chiffrage.schemas.placement import MutationResultRead, PlacementCreate
from chiffrage.schemas.projet import ProjetAggregate, ProjetCreate, ProjetRead, ProjetStructure
from chiffrage.schemas.structure import LotCreate, LotRead, LotUpdate, OuvrageCreate, OuvrageRead
from chiffrage.services.placement import PlacementService

router = APIRouter(prefix='/projets', tags=['projets'])


@router.post('/', response_model=ProjetRead)
def create_projet(projet_in: ProjetCreate, db: Session = Depends(get_db)):
    return crud.create_projet(db, projet_in)


@router.get('/', response_model=list[ProjetRead])
def read_projets(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return crud.get_projets(db, skip, limit)


@router.get('/{projet_id}', response_model=ProjetRead)
def read_projet(projet_id: int, db: Session = Depends(get_db)):
    obj = crud.get_projet(db, projet_id)
    if not obj:
        raise HTTPException(status_code=404, detail='Projet not found')
    return obj


@router.delete('/{projet_id}', response_model=MutationResultRead)
def delete_projet(projet_id: int, service: PlacementService = Depends(get_placement_service)):
    """Supprime le projet, ses lots, ouvrages, blocs, articles et son journal."""
    return MutationResultRead.from_result(service.delete_projet(projet_id))


@router.get('/{projet_id}/evenements', response_model=list[EvenementRead])
def read_projet_evenements(projet_id: int, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    if not crud.get_projet(db, projet_id):
        raise HTTPException(status_code=404, detail='Projet not found')
    return get_evenements_by_projet(db, projet_id, skip, limit)


@router.get('/{projet_id}/structure', response_model=ProjetStructure)
def read_projet_structure(projet_id: int, db: Session = Depends(get_db)):
    """Arborescence lots / ouvrages / blocs / articles avec les totaux en cache."""
    structure = get_projet_structure(db, projet_id)
    if not structure:
        raise HTTPException(status_code=404, detail='Projet not found')
    return structure


@router.get('/{projet_id}/aggregate', response_model=ProjetAggregate)
def read_projet_aggregate(projet_id: int, service: PlacementService = Depends(get_placement_service)):
    return service.get_project_aggregate(projet_id)


@router.post('/{projet_id}/aggregate/refresh', response_model=ProjetAggregate)
def refresh_projet_aggregate(projet_id: int, service: PlacementService = Depends(get_placement_service)):
    return service.refresh_project_aggregate(projet_id)


@router.post('/{projet_id}/placements', response_model=MutationResultRead, status_code=201)
def place_article(
    projet_id: int,
    placement: PlacementCreate,
    service: PlacementService = Depends(get_placement_service),
):
    catalog = placement.id_niveau_6 if placement.id_niveau_6 is not None else placement.labels
    result = service.place_article(
        projet_id,
        placement.coordinates,
        catalog,
        quantite=placement.quantite,
        prix_unitaire_ht=placement.prix_unitaire_ht,
        tva=placement.tva,
        localisation=placement.localisation,
        description=placement.description,
        designation_article=placement.designation_article,
    )
    return MutationResultRead.from_result(result)


@router.post('/{projet_id}/lots', response_model=LotRead, status_code=201)
def create_lot(projet_id: int, lot_in: LotCreate, service: PlacementService = Depends(get_placement_service)):
    return service.create_lot(projet_id, lot_in.id_niveau_2).entity


@router.patch('/{projet_id}/lots/{lot_id}', response_model=LotRead)
def update_lot(
    projet_id: int,
    lot_id: int,
    lot_in: LotUpdate,
    service: PlacementService = Depends(get_placement_service),
):
    return service.update_lot(projet_id, lot_id, lot_in).entity


@router.delete('/{projet_id}/lots/{lot_id}', response_model=MutationResultRead)
def delete_lot(projet_id: int, lot_id: int, service: PlacementService = Depends(get_placement_service)):
    return MutationResultRead.from_result(service.delete_lot(projet_id, lot_id))


@router.post('/{projet_id}/lots/{lot_id}/ouvrages', response_model=OuvrageRead, status_code=201)
def create_ouvrage(
    projet_id: int,
    lot_id: int,
    ouvrage_in: OuvrageCreate,
    service: PlacementService = Depends(get_placement_service),
):
    result = service.create_ouvrage(
        projet_id,
        lot_id,
        ouvrage_in.nom_ouvrage,
        nom_bloc=ouvrage_in.nom_bloc,
        unite_bloc=ouvrage_in.unite_bloc,
        quantite_bloc=ouvrage_in.quantite_bloc,
    )
    return result.entity
