from fastapi import APIRouter, Depends

from chiffrage.api.deps import get_placement_service
from chiffrage.schemas.placement import MutationResultRead, PlacementUpdate
from chiffrage.services.placement import PlacementService

router = APIRouter(prefix='/placements', tags=['placements'])


@router.patch('/{projet_article_id}', response_model=MutationResultRead)
def update_placement(
    projet_article_id: int,
    changes: PlacementUpdate,
    service: PlacementService = Depends(get_placement_service),
):
    return MutationResultRead.from_result(service.update_placement(projet_article_id, changes))


@router.delete('/{projet_article_id}', response_model=MutationResultRead)
def remove_placement(projet_article_id: int, service: PlacementService = Depends(get_placement_service)):
    return MutationResultRead.from_result(service.remove_placement(projet_article_id))
