"""Document delivery API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from linkbridge.core.errors import InvalidRequestError
from linkbridge.delivery.queue import DeliveryQueue
from linkbridge.delivery.types import DeliveryTask
from linkbridge.server.api.deps import get_queue, require_token
from linkbridge.server.schemas import (
    QueueResponse,
    SendDocumentRequest,
    SendDocumentResponse,
    TaskResponse,
)

router = APIRouter(prefix="/api", tags=["delivery"], dependencies=[Depends(require_token)])


@router.post(
    "/send-document",
    response_model=SendDocumentResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
@router.post(
    "/send-pdf",
    response_model=SendDocumentResponse,
    status_code=status.HTTP_202_ACCEPTED,
    include_in_schema=False,
)
def send_document(
    request: SendDocumentRequest,
    queue: DeliveryQueue = Depends(get_queue),
) -> SendDocumentResponse:
    """Queue a document for delivery.

    The request is accepted whether or not the session is currently
    connected; delivery happens once it is.
    """
    try:
        task = DeliveryTask.from_request(
            session_id=request.session_id,
            recipient=request.recipient,
            document_b64=request.document,
            file_name=request.file_name,
            caption=request.caption,
        )
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    queue.enqueue(task)
    return SendDocumentResponse(
        success=True,
        message="Document queued for delivery",
        task_id=task.task_id,
    )


@router.get("/queue", response_model=QueueResponse)
def list_queue(queue: DeliveryQueue = Depends(get_queue)) -> QueueResponse:
    """List pending and dead-lettered tasks."""
    return QueueResponse(
        pending=[TaskResponse(**t.to_dict()) for t in queue.pending()],
        dead_letters=[TaskResponse(**t.to_dict()) for t in queue.dead_letters()],
    )


@router.delete("/queue/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_task(task_id: str, queue: DeliveryQueue = Depends(get_queue)) -> Response:
    """Drop a pending task."""
    if queue.remove(task_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Task not found: {task_id}",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
