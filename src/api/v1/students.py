"""
API v1 student and location routes.

Student registration is a multipart form: the applicant's details plus
an identity-proof document checked against the platform settings.
"""

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from pydantic import EmailStr

from src.api.dependencies import get_location_service, get_verification_service
from src.api.models import ErrorResponse, LocationResponse, StudentRegistrationResponse
from src.domain.exceptions import EmailAlreadyRegistered, ValidationError
from src.domain.location import LocationService
from src.domain.models import StudentRegistration, UploadedDocument
from src.domain.verification import VerificationService

router = APIRouter(tags=["students"])


@router.post(
    "/register/student",
    response_model=StudentRegistrationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid document or fields"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
        422: {"description": "Validation error"},
    },
    summary="Register as a student",
    description="Submit student details and an identity-proof document. "
    "The application stays pending until an administrator reviews it.",
)
def register_student(
    email: EmailStr = Form(...),
    password: str = Form(..., min_length=8),
    first_name: str = Form(..., min_length=1, max_length=100),
    last_name: str = Form(..., min_length=1, max_length=100),
    country: str = Form(..., min_length=1, max_length=100),
    university_name: str = Form(..., min_length=1, max_length=255),
    academic_branch: str = Form(..., min_length=1, max_length=255),
    year_of_joining: int = Form(..., ge=1900, le=2100),
    expected_graduation: str | None = Form(None, pattern=r"^\d{4}$"),
    document: UploadFile = File(...),
    service: VerificationService = Depends(get_verification_service),
) -> StudentRegistrationResponse:
    """
    Register a student application in pending state.

    - **expected_graduation**: Optional graduation year (`YYYY`)
    - **document**: PDF or image proving student status
    """
    registration = StudentRegistration(
        email=email,
        password=password,
        first_name=first_name,
        last_name=last_name,
        country=country,
        university_name=university_name,
        academic_branch=academic_branch,
        year_of_joining=year_of_joining,
        expected_graduation=expected_graduation,
    )
    uploaded = UploadedDocument(
        filename=document.filename or "document",
        content_type=document.content_type or "application/octet-stream",
        content=document.file.read(),
    )

    try:
        student = service.submit(registration, uploaded)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    except EmailAlreadyRegistered:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered as a student",
        ) from None

    return StudentRegistrationResponse(
        message="Student registration submitted successfully. Awaiting admin verification.",
        student_id=student.id,
    )


@router.get(
    "/location",
    response_model=LocationResponse,
    tags=["location"],
    summary="Detect the caller's region",
    description="Resolves the client IP to a country and reports which product lines are available.",
)
def get_location(
    request: Request,
    service: LocationService = Depends(get_location_service),
) -> LocationResponse:
    ip = request.client.host if request.client else None
    return LocationResponse(**service.available_products(ip))
