"""
API v1 admin routes.

Every endpoint requires the administrator's HTTP BASIC AUTH credentials.
The authenticated admin email is recorded in audit fields.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from src.api.dependencies import (
    get_catalog_service,
    get_purchase_service,
    get_scheduler,
    get_settings_service,
    get_verification_service,
    require_admin,
)
from src.api.models import (
    ConversionResponse,
    EbookResponse,
    ErrorResponse,
    ReviewEbookRequest,
    RunConversionResponse,
    SchedulerStatusResponse,
    SettingResponse,
    StudentActionResponse,
    StudentResponse,
    StudentStatsResponse,
    UpdateSettingRequest,
    UpdateSettingResponse,
    VerifyStudentRequest,
)
from src.domain.catalog import CatalogService
from src.domain.exceptions import (
    AccountConflict,
    InvalidTransition,
    ItemNotFound,
    SettingNotFound,
    StudentNotFound,
    ValidationError,
)
from src.domain.platform_settings import PlatformSettingsService
from src.domain.ports import ItemStatus, VerificationStatus
from src.domain.purchases import PurchaseService
from src.domain.scheduler import ConversionScheduler
from src.domain.verification import VerificationService

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

_STUDENT_ERRORS = {
    404: {"model": ErrorResponse, "description": "Student not found"},
    409: {"model": ErrorResponse, "description": "Student is not in a state that allows this"},
}


def _student_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")


# --- Students ---


@router.get(
    "/students/pending",
    response_model=list[StudentResponse],
    summary="List pending student applications",
)
def list_pending_students(
    service: VerificationService = Depends(get_verification_service),
) -> list[StudentResponse]:
    return [StudentResponse.model_validate(student) for student in service.list_pending()]


@router.put(
    "/students/{student_id}/verify",
    response_model=StudentActionResponse,
    responses=_STUDENT_ERRORS,
    summary="Approve or reject a student application",
)
def verify_student(
    student_id: str,
    request_data: VerifyStudentRequest,
    admin_id: str = Depends(require_admin),
    service: VerificationService = Depends(get_verification_service),
) -> StudentActionResponse:
    try:
        student = service.review(
            student_id,
            VerificationStatus(request_data.status),
            admin_id,
            request_data.admin_notes,
        )
    except StudentNotFound:
        raise _student_not_found() from None
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from None
    return StudentActionResponse(
        message=f"Student {request_data.status} successfully",
        student=StudentResponse.model_validate(student),
    )


@router.post(
    "/students/{student_id}/extend",
    response_model=StudentActionResponse,
    responses=_STUDENT_ERRORS,
    summary="Extend a student's discount period",
)
def extend_student(
    student_id: str,
    admin_id: str = Depends(require_admin),
    service: VerificationService = Depends(get_verification_service),
) -> StudentActionResponse:
    try:
        student = service.extend(student_id, admin_id)
    except StudentNotFound:
        raise _student_not_found() from None
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from None
    return StudentActionResponse(
        message="Student access extended successfully",
        student=StudentResponse.model_validate(student),
    )


@router.post(
    "/students/{student_id}/graduate",
    response_model=StudentActionResponse,
    responses=_STUDENT_ERRORS,
    summary="Record a student's graduation",
    description="Graduated students are converted by the next conversion sweep.",
)
def graduate_student(
    student_id: str,
    service: VerificationService = Depends(get_verification_service),
) -> StudentActionResponse:
    try:
        student = service.mark_graduated(student_id)
    except StudentNotFound:
        raise _student_not_found() from None
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from None
    return StudentActionResponse(
        message="Student marked as graduated",
        student=StudentResponse.model_validate(student),
    )


@router.post(
    "/students/{student_id}/convert",
    response_model=ConversionResponse,
    responses=_STUDENT_ERRORS,
    summary="Convert a student to a regular account now",
)
def convert_student(
    student_id: str,
    service: VerificationService = Depends(get_verification_service),
) -> ConversionResponse:
    try:
        account = service.convert(student_id)
    except StudentNotFound:
        raise _student_not_found() from None
    except (InvalidTransition, AccountConflict) as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from None
    return ConversionResponse(
        message="Student converted to regular account",
        student_id=student_id,
        user_id=account.id,
    )


@router.post(
    "/students/run-conversion",
    response_model=RunConversionResponse,
    summary="Run a conversion sweep now",
    description="Converts every due student. Failures are reported per record.",
)
def run_conversion(
    scheduler: ConversionScheduler = Depends(get_scheduler),
) -> RunConversionResponse:
    result = scheduler.run_sweep()
    return RunConversionResponse(converted_count=result.converted_count, errors=result.errors)


@router.get(
    "/students/eligible-conversion",
    response_model=list[StudentResponse],
    summary="List students due for conversion",
)
def list_eligible_students(
    service: VerificationService = Depends(get_verification_service),
) -> list[StudentResponse]:
    return [
        StudentResponse.model_validate(student)
        for student in service.list_eligible_for_conversion()
    ]


@router.get(
    "/students/stats",
    response_model=StudentStatsResponse,
    summary="Student lifecycle statistics",
)
def student_stats(
    service: VerificationService = Depends(get_verification_service),
) -> StudentStatsResponse:
    return StudentStatsResponse.model_validate(service.stats())


@router.get(
    "/scheduler",
    response_model=SchedulerStatusResponse,
    summary="Conversion scheduler status",
)
def scheduler_status(
    scheduler: ConversionScheduler = Depends(get_scheduler),
) -> SchedulerStatusResponse:
    return SchedulerStatusResponse(**scheduler.status())


# --- Ebooks ---


@router.put(
    "/ebooks/{ebook_id}/review",
    response_model=EbookResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Ebook not found"},
        409: {"model": ErrorResponse, "description": "Ebook is not awaiting review"},
    },
    summary="Publish or reject a submitted ebook",
)
def review_ebook(
    ebook_id: str,
    request_data: ReviewEbookRequest,
    admin_id: str = Depends(require_admin),
    service: CatalogService = Depends(get_catalog_service),
) -> EbookResponse:
    try:
        item = service.review(
            ebook_id, ItemStatus(request_data.status), admin_id, request_data.admin_notes
        )
    except ItemNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ebook not found") from None
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from None
    return EbookResponse.model_validate(item)


@router.post(
    "/ebooks/{ebook_id}/recompute",
    response_model=EbookResponse,
    responses={404: {"model": ErrorResponse, "description": "Ebook not found"}},
    summary="Rebuild an ebook's sales aggregates",
    description="Recomputes sales, revenue and earnings from completed purchases.",
)
def recompute_ebook_stats(
    ebook_id: str,
    service: PurchaseService = Depends(get_purchase_service),
) -> EbookResponse:
    try:
        item = service.recompute_item_stats(ebook_id)
    except ItemNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ebook not found") from None
    return EbookResponse.model_validate(item)


# --- Platform settings ---


@router.get(
    "/settings",
    response_model=list[SettingResponse],
    summary="List platform settings",
)
def list_settings(
    service: PlatformSettingsService = Depends(get_settings_service),
) -> list[SettingResponse]:
    return [SettingResponse.model_validate(setting) for setting in service.list_all()]


@router.put(
    "/settings/{key}",
    response_model=UpdateSettingResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid value for this setting"},
        404: {"model": ErrorResponse, "description": "Setting not found"},
    },
    summary="Update a platform setting",
    description="Takes effect for the next reader; cached values are invalidated.",
)
def update_setting(
    key: str,
    request_data: UpdateSettingRequest,
    admin_id: str = Depends(require_admin),
    service: PlatformSettingsService = Depends(get_settings_service),
) -> UpdateSettingResponse:
    try:
        setting = service.update(key, request_data.value, admin_id)
    except SettingNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found") from None
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    return UpdateSettingResponse(
        message="Setting updated successfully",
        setting=SettingResponse.model_validate(setting),
    )
