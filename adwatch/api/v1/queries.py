"""Subscriber and tracked query endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from adwatch.core.exceptions import (
    DuplicateQueryError,
    ExtractionError,
    NotFoundError,
    QueryLimitExceeded,
    ValidationError,
)
from adwatch.dependencies import get_query_store, get_registration_service
from adwatch.schemas import (
    AdResponse,
    ApiResponse,
    PreviewRequest,
    PreviewResponse,
    QueryCreateRequest,
    RegistrationResponse,
    SubscriberResponse,
    SubscriberUpsertRequest,
    TrackedQueryResponse,
)
from adwatch.services.query_store import QueryStore
from adwatch.services.registration import RegistrationService

router = APIRouter()


def _extraction_failed(e: ExtractionError) -> HTTPException:
    return HTTPException(status_code=502, detail=e.to_dict())


async def _require_subscriber(store: QueryStore, chat_id: int):
    subscriber = await store.get_subscriber_by_chat_id(chat_id)
    if subscriber is None:
        raise HTTPException(status_code=404, detail="Subscriber not found")
    return subscriber


@router.post("/subscribers", response_model=ApiResponse)
async def upsert_subscriber(
    body: SubscriberUpsertRequest,
    store: QueryStore = Depends(get_query_store),
):
    """Create a subscriber for a chat id, or refresh an existing one."""
    subscriber = await store.upsert_subscriber(body.chat_id, body.username)
    return ApiResponse(
        status="success",
        data=SubscriberResponse.model_validate(subscriber).model_dump(mode="json"),
    )


@router.get("/subscribers/{chat_id}/queries", response_model=ApiResponse)
async def list_queries(chat_id: int, store: QueryStore = Depends(get_query_store)):
    """List the tracked queries of a subscriber."""
    subscriber = await _require_subscriber(store, chat_id)
    queries = await store.list_queries(subscriber.id)
    return ApiResponse(
        status="success",
        data=[TrackedQueryResponse.model_validate(q).model_dump(mode="json") for q in queries],
    )


@router.post("/subscribers/{chat_id}/queries", response_model=ApiResponse, status_code=201)
async def register_query(
    chat_id: int,
    body: QueryCreateRequest,
    store: QueryStore = Depends(get_query_store),
    service: RegistrationService = Depends(get_registration_service),
):
    """Track a search URL for a subscriber.

    Runs a trial extraction and returns a preview of the most recent ads.
    """
    subscriber = await _require_subscriber(store, chat_id)

    try:
        result = await service.register(subscriber.id, body.url)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except DuplicateQueryError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except QueryLimitExceeded as e:
        raise HTTPException(status_code=409, detail=e.message)
    except ExtractionError as e:
        raise _extraction_failed(e)

    response = RegistrationResponse(
        query=TrackedQueryResponse.model_validate(result.query),
        ads_found=result.ads_found,
        preview=[AdResponse.model_validate(ad) for ad in result.preview],
    )
    return ApiResponse(status="success", data=response.model_dump(mode="json"))


@router.post("/queries/preview", response_model=ApiResponse)
async def preview_query(
    body: PreviewRequest,
    service: RegistrationService = Depends(get_registration_service),
):
    """Extract the ads a URL currently yields without storing anything."""
    try:
        preview = await service.preview(body.url)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)
    except ExtractionError as e:
        raise _extraction_failed(e)

    response = PreviewResponse(
        url=preview.url,
        platform=preview.platform,
        ads_found=preview.ads_found,
        ads=[AdResponse.model_validate(ad) for ad in preview.ads],
    )
    return ApiResponse(status="success", data=response.model_dump(mode="json"))


@router.get("/queries/{query_id}/ads", response_model=ApiResponse)
async def recent_ads(
    query_id: UUID,
    limit: int = Query(5, ge=1, le=50),
    store: QueryStore = Depends(get_query_store),
):
    """Most recently published ads stored for a query."""
    try:
        await store.get_query(query_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    ads = await store.recent_ads(query_id, limit=limit)
    return ApiResponse(
        status="success",
        data=[AdResponse.model_validate(ad).model_dump(mode="json") for ad in ads],
    )


@router.post("/queries/{query_id}/reactivate", response_model=ApiResponse)
async def reactivate_query(query_id: UUID, store: QueryStore = Depends(get_query_store)):
    """Set a deactivated query active again with a cleared failure counter."""
    try:
        query = await store.reactivate(query_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    return ApiResponse(
        status="success",
        data=TrackedQueryResponse.model_validate(query).model_dump(mode="json"),
    )


@router.delete("/queries/{query_id}", response_model=ApiResponse)
async def delete_query(query_id: UUID, store: QueryStore = Depends(get_query_store)):
    """Stop tracking a query and forget its ads."""
    try:
        await store.delete_query(query_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    return ApiResponse(status="success", data={"deleted": True})
