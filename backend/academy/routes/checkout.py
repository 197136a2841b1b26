from fastapi import APIRouter, status

from .. import schemas
from ..auth import CurrentUser
from ..repositories import entitlements as entitlements_repo
from ..services import checkout_service

router = APIRouter(prefix="/api", tags=["checkout"])


@router.post(
    "/checkout/course",
    response_model=schemas.CheckoutCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_course_checkout(payload: schemas.CourseCheckoutRequest, current: CurrentUser):
    return await checkout_service.create_course_checkout(current, payload)


@router.get("/me/entitlements")
async def my_entitlements(current: CurrentUser):
    rows = await entitlements_repo.list_user_entitlements(str(current["id"]))
    return {"items": rows}
