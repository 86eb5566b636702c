from fastapi import APIRouter, Depends

from app.dependencies.auth import CurrentUser, Role, role_required

router = APIRouter(prefix="/ping", tags=["health"])


@router.get("", summary="Public health probe")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/secure",
    summary="Staff only health probe",
    dependencies=[Depends(role_required(Role.RECEPTION))],
)
async def secure_ping(user: CurrentUser) -> dict[str, str]:
    return {"status": "ok", "user": user.username}
