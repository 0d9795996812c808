"""Artwork API routes: upload, approval, revisions, linking and notes."""

import logging

from fastapi import APIRouter, Depends, File, UploadFile, status

from src.api.deps import AdminActor, CurrentActor
from src.schemas.artwork import (
    ArtworkActionRequest,
    ArtworkApproveResponse,
    ArtworkLinkResponse,
    ArtworkNoteCreate,
    ArtworkNoteListResponse,
    ArtworkNoteResponse,
    ArtworkUploadResponse,
    OrderArtworkResponse,
    ReviewActionRequest,
    RevisionRequest,
)
from src.services.artwork_service import ArtworkService, get_artwork_service
from src.services.artwork_storage import ArtworkUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["artwork"])


@router.get(
    "/{order_id}/artwork",
    response_model=OrderArtworkResponse,
    summary="Get order artwork",
    description="Returns the order's items with their designs and the aggregate artwork status.",
)
async def get_order_artwork(
    order_id: int,
    actor: CurrentActor,
    service: ArtworkService = Depends(get_artwork_service),
) -> OrderArtworkResponse:
    """Get artwork for every item of an order.

    Args:
        order_id: The order's ID.
        actor: The authenticated actor.
        service: Artwork service.

    Returns:
        OrderArtworkResponse: Items, designs and aggregate status.
    """
    result = await service.get_order_artwork(order_id, actor)
    return OrderArtworkResponse.from_result(result)


@router.post(
    "/{order_id}/items/{item_id}/artwork",
    response_model=ArtworkUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload artwork",
    description="Uploads or replaces the artwork file for an order item (multipart form field 'file').",
    responses={
        400: {"description": "Invalid file or order no longer accepts artwork"},
        403: {"description": "Not authorized for this order"},
        502: {"description": "File storage failed"},
    },
)
async def upload_artwork(
    order_id: int,
    item_id: int,
    actor: CurrentActor,
    file: UploadFile | None = File(default=None),
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkUploadResponse:
    """Upload artwork for an order item.

    Admin uploads are sent to the customer for approval. Customer uploads
    notify the admins.

    Args:
        order_id: The order's ID.
        item_id: The order item's ID.
        actor: The authenticated actor.
        file: Uploaded artwork file.
        service: Artwork service.

    Returns:
        ArtworkUploadResponse: Design ID, public URL and aggregate status.
    """
    upload = None
    if file is not None:
        upload = ArtworkUpload(
            filename=file.filename or "",
            content=await file.read(),
            content_type=file.content_type,
        )

    result = await service.upload_artwork(order_id, item_id, actor, upload)
    return ArtworkUploadResponse(
        message="Artwork uploaded successfully",
        design_id=result["design_id"],
        artwork_url=result["artwork_url"],
        artwork_status=result["artwork_status"],
    )


@router.put(
    "/{order_id}/items/{item_id}/artwork",
    response_model=ArtworkApproveResponse | ArtworkLinkResponse,
    summary="Approve or link artwork",
    description="action=approve approves the item's artwork; action=link attaches an existing design.",
)
async def update_artwork(
    order_id: int,
    item_id: int,
    data: ArtworkActionRequest,
    actor: CurrentActor,
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkApproveResponse | ArtworkLinkResponse:
    """Approve the item's artwork or link an existing design to it."""
    if data.action == "approve":
        result = await service.approve(order_id, item_id, actor)
        message = (
            "All artwork approved, your order is ready for production"
            if result["all_approved"]
            else "Artwork approved"
        )
        return ArtworkApproveResponse(
            message=message,
            approved=result["approved"],
            all_items_approved=result["all_approved"],
            artwork_status=result["artwork_status"],
        )

    result = await service.link_existing_design(order_id, item_id, actor, data.design_id)
    return ArtworkLinkResponse(
        message="Design linked to order item",
        design_id=result["design_id"],
        artwork_status=result["artwork_status"],
    )


@router.delete(
    "/{order_id}/items/{item_id}/artwork",
    response_model=ArtworkLinkResponse,
    summary="Unlink artwork",
    description="Detaches the design from an order item. The design itself is kept.",
)
async def unlink_artwork(
    order_id: int,
    item_id: int,
    actor: CurrentActor,
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkLinkResponse:
    """Detach the design from an order item."""
    result = await service.unlink_artwork(order_id, item_id, actor)
    return ArtworkLinkResponse(
        message="Artwork removed from order item",
        design_id=result["design_id"],
        artwork_status=result["artwork_status"],
    )


@router.post(
    "/{order_id}/items/{item_id}/artwork/revision",
    response_model=ArtworkLinkResponse,
    summary="Request artwork revision",
    description="Flags the item's artwork and tells the customer what to change. Admin only.",
)
async def request_revision(
    order_id: int,
    item_id: int,
    data: RevisionRequest,
    actor: AdminActor,
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkLinkResponse:
    """Request changes to an item's artwork."""
    result = await service.request_revision(order_id, item_id, actor, data.notes)
    return ArtworkLinkResponse(
        message="Revision requested, the customer has been notified",
        design_id=result["design_id"],
        artwork_status=result["artwork_status"],
    )


@router.post(
    "/{order_id}/items/{item_id}/artwork/review",
    response_model=ArtworkLinkResponse,
    summary="Advance artwork review",
    description="start_review takes customer artwork into review; send_for_approval hands it to the customer. Admin only.",
)
async def review_artwork(
    order_id: int,
    item_id: int,
    data: ReviewActionRequest,
    actor: AdminActor,
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkLinkResponse:
    """Apply an admin review transition."""
    if data.action == "start_review":
        result = await service.start_review(order_id, item_id, actor)
        message = "Artwork is in review"
    else:
        result = await service.send_for_approval(order_id, item_id, actor)
        message = "Artwork sent to the customer for approval"

    return ArtworkLinkResponse(
        message=message,
        design_id=result["design_id"],
        artwork_status=result["artwork_status"],
    )


@router.get(
    "/{order_id}/artwork/notes",
    response_model=ArtworkNoteListResponse,
    summary="List artwork notes",
    description="Returns the artwork conversation for an order, oldest first.",
)
async def list_artwork_notes(
    order_id: int,
    actor: CurrentActor,
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkNoteListResponse:
    """List the order's artwork conversation."""
    notes = await service.list_notes(order_id, actor)
    return ArtworkNoteListResponse(notes=[ArtworkNoteResponse(**note) for note in notes])


@router.post(
    "/{order_id}/artwork/notes",
    response_model=ArtworkNoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add artwork note",
    description="Posts a message in the order's artwork conversation and notifies the other party.",
)
async def add_artwork_note(
    order_id: int,
    data: ArtworkNoteCreate,
    actor: CurrentActor,
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkNoteResponse:
    """Add a message to the order's artwork conversation."""
    note = await service.add_note(order_id, actor, data.content, order_item_id=data.order_item_id)
    return ArtworkNoteResponse(**note)


# Guest access: the order's access token stands in for a signed-in customer


@router.get(
    "/guest/{token}/artwork",
    response_model=OrderArtworkResponse,
    summary="Get order artwork (guest)",
    description="Same as GET /orders/{order_id}/artwork, authorized by the order's access token.",
)
async def guest_get_order_artwork(
    token: str,
    service: ArtworkService = Depends(get_artwork_service),
) -> OrderArtworkResponse:
    """Get an order's artwork with its access token."""
    order_id, guest = await service.resolve_access_token(token)
    return await get_order_artwork(order_id, guest, service)


@router.post(
    "/guest/{token}/items/{item_id}/artwork",
    response_model=ArtworkUploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload artwork (guest)",
    description="Same as POST /orders/{order_id}/items/{item_id}/artwork, authorized by the order's access token.",
)
async def guest_upload_artwork(
    token: str,
    item_id: int,
    file: UploadFile | None = File(default=None),
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkUploadResponse:
    """Upload artwork for an item of a guest order."""
    order_id, guest = await service.resolve_access_token(token)
    return await upload_artwork(order_id, item_id, guest, file, service)


@router.put(
    "/guest/{token}/items/{item_id}/artwork",
    response_model=ArtworkApproveResponse | ArtworkLinkResponse,
    summary="Approve or link artwork (guest)",
    description="Same as PUT /orders/{order_id}/items/{item_id}/artwork, authorized by the order's access token.",
)
async def guest_update_artwork(
    token: str,
    item_id: int,
    data: ArtworkActionRequest,
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkApproveResponse | ArtworkLinkResponse:
    """Approve or link artwork on a guest order."""
    order_id, guest = await service.resolve_access_token(token)
    return await update_artwork(order_id, item_id, data, guest, service)


@router.delete(
    "/guest/{token}/items/{item_id}/artwork",
    response_model=ArtworkLinkResponse,
    summary="Unlink artwork (guest)",
    description="Same as DELETE /orders/{order_id}/items/{item_id}/artwork, authorized by the order's access token.",
)
async def guest_unlink_artwork(
    token: str,
    item_id: int,
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkLinkResponse:
    """Detach the design from an item of a guest order."""
    order_id, guest = await service.resolve_access_token(token)
    return await unlink_artwork(order_id, item_id, guest, service)


@router.get(
    "/guest/{token}/artwork/notes",
    response_model=ArtworkNoteListResponse,
    summary="List artwork notes (guest)",
)
async def guest_list_artwork_notes(
    token: str,
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkNoteListResponse:
    """List a guest order's artwork conversation."""
    order_id, guest = await service.resolve_access_token(token)
    return await list_artwork_notes(order_id, guest, service)


@router.post(
    "/guest/{token}/artwork/notes",
    response_model=ArtworkNoteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add artwork note (guest)",
)
async def guest_add_artwork_note(
    token: str,
    data: ArtworkNoteCreate,
    service: ArtworkService = Depends(get_artwork_service),
) -> ArtworkNoteResponse:
    """Add a message to a guest order's artwork conversation."""
    order_id, guest = await service.resolve_access_token(token)
    return await add_artwork_note(order_id, data, guest, service)
