"""
API v1 ebook routes.

Catalog browsing, author drafts, purchases, payment callbacks and
credential-checked downloads.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import FileResponse

from src.api.dependencies import get_catalog_service, get_purchase_service
from src.api.models import (
    CatalogEntryResponse,
    CreateEbookRequest,
    DownloadInfo,
    EbookPricing,
    EbookResponse,
    ErrorResponse,
    PaymentWebhookRequest,
    PaymentWebhookResponse,
    PricingResponse,
    PurchaseRequest,
    PurchaseResponse,
    SubmitEbookRequest,
)
from src.domain.catalog import CatalogService
from src.domain.exceptions import (
    AccessDenied,
    InvalidTransition,
    ItemNotFound,
    ItemUnavailable,
    PurchaseNotFound,
    ValidationError,
)
from src.domain.models import CatalogItem, PriceBreakdown
from src.domain.purchases import PurchaseService

router = APIRouter(tags=["ebooks"])


def _catalog_entry(item: CatalogItem, quote: dict[str, PriceBreakdown]) -> CatalogEntryResponse:
    return CatalogEntryResponse(
        ebook=EbookResponse.model_validate(item),
        pricing=EbookPricing(
            student=PricingResponse.model_validate(quote["student"]),
            regular=PricingResponse.model_validate(quote["regular"]),
        ),
    )


@router.get(
    "/ebooks",
    response_model=list[CatalogEntryResponse],
    summary="List published ebooks",
    description="Published ebooks with both student and regular pricing.",
)
def list_ebooks(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: CatalogService = Depends(get_catalog_service),
) -> list[CatalogEntryResponse]:
    return [_catalog_entry(item, quote) for item, quote in service.list_published(limit, offset)]


@router.get(
    "/ebooks/{ebook_id}",
    response_model=CatalogEntryResponse,
    responses={404: {"model": ErrorResponse, "description": "Ebook not found"}},
    summary="Get a published ebook",
)
def get_ebook(
    ebook_id: str,
    service: CatalogService = Depends(get_catalog_service),
) -> CatalogEntryResponse:
    try:
        item, quote = service.get_published(ebook_id)
    except ItemNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ebook not found") from None
    return _catalog_entry(item, quote)


@router.post(
    "/ebooks",
    response_model=EbookResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Invalid price or file format"}},
    summary="Create a draft ebook",
    description="Authors create ebooks in draft state; they are not visible until published.",
)
def create_ebook(
    request_data: CreateEbookRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> EbookResponse:
    try:
        item = service.create_item(
            title=request_data.title,
            author_id=request_data.author_id,
            author_name=request_data.author_name,
            base_price=request_data.base_price,
            file_ref=request_data.file_ref,
            file_format=request_data.file_format,
            currency=request_data.currency,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None
    return EbookResponse.model_validate(item)


@router.post(
    "/ebooks/{ebook_id}/submit",
    response_model=EbookResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Ebook not found"},
        409: {"model": ErrorResponse, "description": "Ebook is not a draft of this author"},
    },
    summary="Submit a draft ebook for review",
)
def submit_ebook(
    ebook_id: str,
    request_data: SubmitEbookRequest,
    service: CatalogService = Depends(get_catalog_service),
) -> EbookResponse:
    try:
        item = service.submit(ebook_id, request_data.author_id)
    except ItemNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ebook not found") from None
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from None
    return EbookResponse.model_validate(item)


@router.post(
    "/ebooks/{ebook_id}/purchase",
    response_model=PurchaseResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Ebook not available"},
        422: {"description": "Validation error"},
    },
    summary="Purchase an ebook",
    description="Starts checkout. Students with an approved account receive the "
    "discount automatically. The response carries the download credential, "
    "which becomes usable once the payment completes.",
)
def purchase_ebook(
    ebook_id: str,
    request_data: PurchaseRequest,
    service: PurchaseService = Depends(get_purchase_service),
) -> PurchaseResponse:
    """
    Create a pending purchase.

    - **email**: Buyer email; also the download identity
    """
    try:
        receipt = service.create_purchase(ebook_id, request_data.email)
    except ItemUnavailable:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Ebook not available"
        ) from None
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from None

    purchase = receipt.purchase
    return PurchaseResponse(
        message="Purchase created successfully",
        purchase_id=purchase.id,
        order_id=purchase.order_id,
        status=purchase.status.value,
        currency=purchase.currency,
        pricing=PricingResponse(
            original_price=purchase.list_price,
            discount=purchase.discount,
            platform_fee=purchase.platform_fee,
            author_earnings=purchase.author_earnings,
            final_price=purchase.final_price,
        ),
        download_info=DownloadInfo(
            email=purchase.buyer_email,
            secret=purchase.credential,
            download_url=receipt.download_url,
        ),
        payment_provider=purchase.payment_provider,
        payment_reference=purchase.payment_reference,
        payment_redirect_url=receipt.payment_redirect_url,
    )


@router.post(
    "/payments/webhook",
    response_model=PaymentWebhookResponse,
    responses={
        404: {"model": ErrorResponse, "description": "Purchase not found"},
        409: {"model": ErrorResponse, "description": "Purchase cannot move to that status"},
    },
    summary="Payment provider callback",
    description="Completes or fails a pending purchase. Repeated completions are ignored.",
)
def payment_webhook(
    request_data: PaymentWebhookRequest,
    service: PurchaseService = Depends(get_purchase_service),
) -> PaymentWebhookResponse:
    try:
        purchase = service.handle_payment_event(
            request_data.purchase_id,
            request_data.transaction_id,
            succeeded=request_data.status == "completed",
            reason=request_data.reason,
        )
    except PurchaseNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Purchase not found"
        ) from None
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from None
    return PaymentWebhookResponse(purchase_id=purchase.id, status=purchase.status.value)


@router.get(
    "/ebooks/{ebook_id}/download",
    response_class=FileResponse,
    responses={
        200: {"description": "The ebook file"},
        403: {"model": ErrorResponse, "description": "Invalid download credentials"},
    },
    summary="Download a purchased ebook",
    description="Requires the buyer email and the secret from the purchase response.",
)
def download_ebook(
    ebook_id: str,
    email: str | None = Query(None),
    secret: str | None = Query(None),
    service: PurchaseService = Depends(get_purchase_service),
) -> FileResponse:
    """
    Stream the ebook file to a verified buyer.

    Every credential failure returns the same 403 response.
    """
    try:
        if not email or not secret:
            raise AccessDenied()
        handle = service.download(ebook_id, email, secret)
    except AccessDenied as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e)) from None
    except ItemNotFound:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Ebook file not found"
        ) from None
    return FileResponse(handle.path, media_type=handle.media_type, filename=handle.filename)
