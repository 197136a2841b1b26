from typing import Annotated

from fastapi import Depends, HTTPException, status

from .auth import CurrentUser

STAFF_ROLES = frozenset({"admin", "teacher"})


async def require_admin(current: CurrentUser) -> dict:
    if current.get("role") != "admin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return current


async def require_teacher(current: CurrentUser) -> dict:
    if current.get("role") not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Teacher access required"
        )
    return current


def is_staff(user: dict) -> bool:
    return user.get("role") in STAFF_ROLES


AdminUser = Annotated[dict, Depends(require_admin)]
TeacherUser = Annotated[dict, Depends(require_teacher)]
