from fastapi import APIRouter, Response, status

from .. import schemas
from ..permissions import AdminUser
from ..services import audience_sync_service

router = APIRouter(prefix="/api/admin/custom-audiences", tags=["custom-audiences"])


@router.get("")
async def list_audiences(current: AdminUser):
    rows = await audience_sync_service.list_audiences()
    return {"audiences": [schemas.CustomAudienceRecord(**row) for row in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_audience(payload: schemas.CustomAudienceCreateRequest, current: AdminUser):
    row = await audience_sync_service.create_audience(current, payload)
    return {"audience": schemas.CustomAudienceRecord(**row)}


@router.get("/{audience_id}")
async def get_audience(audience_id: str, current: AdminUser):
    row = await audience_sync_service.get_audience(audience_id)
    history = row.pop("sync_history", [])
    return {"audience": schemas.CustomAudienceRecord(**row), "sync_history": history}


@router.patch("/{audience_id}")
async def update_audience(
    audience_id: str, payload: schemas.CustomAudienceUpdateRequest, current: AdminUser
):
    row = await audience_sync_service.update_audience(audience_id, payload)
    return {"audience": schemas.CustomAudienceRecord(**row)}


@router.delete("/{audience_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_audience(audience_id: str, current: AdminUser):
    await audience_sync_service.delete_audience(audience_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{audience_id}/sync", response_model=schemas.AudienceSyncResponse)
async def sync_audience(audience_id: str, current: AdminUser):
    return await audience_sync_service.sync_audience(audience_id)
