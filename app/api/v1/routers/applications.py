from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api import deps
from app.core.settings import settings
from app.db.session import get_db
from app.models import User
from app.schemas.application import (
    ApplicationCreate,
    ApplicationCreateResponse,
    ApplicationDTO,
    ApplicationListResponse,
    ApplicationUpdate,
    RedirectResponse,
    StepValidationResponse,
    SuccessResponse,
)
from app.services import applications

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post("", response_model=ApplicationCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_application(
    payload: ApplicationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_authenticated_user),
) -> ApplicationCreateResponse:
    application = await applications.create_application(
        db,
        current_user,
        nationality=payload.nationality,
        travel_purpose=payload.travel_purpose,
    )
    return ApplicationCreateResponse(id=application.id)


@router.get("", response_model=ApplicationListResponse)
async def list_applications(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_authenticated_user),
) -> ApplicationListResponse:
    items = await applications.list_applications(db, current_user)
    return ApplicationListResponse(
        items=[ApplicationDTO.model_validate(item) for item in items],
        total=len(items),
    )


@router.get("/draft", response_model=Optional[ApplicationDTO])
async def get_draft(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_authenticated_user),
) -> Optional[ApplicationDTO]:
    draft = await applications.get_draft(db, current_user)
    return ApplicationDTO.model_validate(draft) if draft else None


@router.get("/{application_id}", response_model=ApplicationDTO)
async def get_application(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_authenticated_user),
) -> ApplicationDTO:
    application = await applications.get_owned_application(db, application_id, current_user)
    return ApplicationDTO.model_validate(application)


@router.patch("/{application_id}", response_model=SuccessResponse)
async def update_application(
    application_id: UUID,
    payload: ApplicationUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_authenticated_user),
) -> SuccessResponse:
    await applications.update_application(
        db, application_id, current_user, payload.model_dump(exclude_unset=True)
    )
    return SuccessResponse()


@router.post("/{application_id}/redirect", response_model=RedirectResponse)
async def mark_redirected(
    application_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_authenticated_user),
) -> RedirectResponse:
    application = await applications.mark_redirected(db, application_id, current_user)
    return RedirectResponse(
        redirect_url=settings.official_portal_url,
        redirected_at=application.redirected_at,
    )


@router.get("/{application_id}/steps/{step}/validation", response_model=StepValidationResponse)
async def validate_step(
    application_id: UUID,
    step: int = Path(ge=1, le=8),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(deps.require_authenticated_user),
) -> StepValidationResponse:
    application = await applications.get_owned_application(db, application_id, current_user)
    missing = applications.validate_step(application, step)
    return StepValidationResponse(step=step, is_valid=not missing, missing_fields=missing)
