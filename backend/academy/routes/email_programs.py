from fastapi import APIRouter, Response, status

from .. import schemas
from ..permissions import AdminUser
from ..services import email_programs_service

router = APIRouter(prefix="/api/admin/email-programs", tags=["email-programs"])


@router.get("", response_model=schemas.EmailProgramListResponse)
async def list_programs(current: AdminUser):
    rows = await email_programs_service.list_programs()
    return schemas.EmailProgramListResponse(programs=rows)


@router.post(
    "",
    response_model=schemas.EmailProgramResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_program(payload: schemas.EmailProgramCreateRequest, current: AdminUser):
    program = await email_programs_service.create_program(current, payload)
    return schemas.EmailProgramResponse(program=program)


@router.get("/{program_id}", response_model=schemas.EmailProgramDetailResponse)
async def get_program(program_id: str, current: AdminUser):
    detail = await email_programs_service.get_program_detail(program_id)
    return schemas.EmailProgramDetailResponse(**detail)


@router.patch("/{program_id}", response_model=schemas.EmailProgramResponse)
async def update_program(
    program_id: str, payload: schemas.EmailProgramUpdateRequest, current: AdminUser
):
    program = await email_programs_service.update_program(program_id, payload)
    return schemas.EmailProgramResponse(program=program)


@router.delete("/{program_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_program(program_id: str, current: AdminUser):
    await email_programs_service.delete_program(program_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
