from fastapi import APIRouter, Depends

from chiffrage.api.deps import get_placement_service
from chiffrage.schemas.placement import MutationResultRead
from chiffrage.schemas.structure import BlocCreate, BlocRead, BlocUpdate, OuvrageRead, OuvrageUpdate
from chiffrage.services.placement import PlacementService

router = APIRouter(tags=['structure'])


@router.post('/ouvrages/{ouvrage_id}/blocs', response_model=BlocRead, status_code=201)
def create_bloc(ouvrage_id: int, bloc_in: BlocCreate, service: PlacementService = Depends(get_placement_service)):
    return service.create_bloc(ouvrage_id, bloc_in.nom_bloc, bloc_in.unite, bloc_in.quantite).entity


@router.patch('/ouvrages/{ouvrage_id}', response_model=OuvrageRead)
def update_ouvrage(
    ouvrage_id: int,
    changes: OuvrageUpdate,
    service: PlacementService = Depends(get_placement_service),
):
    return service.update_ouvrage(ouvrage_id, changes).entity


@router.delete('/ouvrages/{ouvrage_id}', response_model=MutationResultRead)
def delete_ouvrage(ouvrage_id: int, service: PlacementService = Depends(get_placement_service)):
    return MutationResultRead.from_result(service.delete_ouvrage(ouvrage_id))


@router.patch('/blocs/{bloc_id}', response_model=BlocRead)
def update_bloc(bloc_id: int, changes: BlocUpdate, service: PlacementService = Depends(get_placement_service)):
    return service.update_bloc(bloc_id, changes).entity


@router.delete('/blocs/{bloc_id}', response_model=MutationResultRead)
def delete_bloc(bloc_id: int, service: PlacementService = Depends(get_placement_service)):
    return MutationResultRead.from_result(service.delete_bloc(bloc_id))
