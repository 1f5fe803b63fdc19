from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ....application.pagination import DEFAULT_LIMIT, MAX_LIMIT, paginate
from ....application.scopes import get_visible, scoped_select
from ....domain.entities import Principal
from ....domain.errors import AuthorizationError, NotFoundError
from ....domain.permissions import CREATE, DELETE, READ
from ....infrastructure.db import get_db
from ....infrastructure.models import Message
from ....infrastructure.repositories import UserRepository, log_audit
from ..authz import require_permission
from ..schemas import MessageCreate, MessageOut, Page, UnreadCount

router = APIRouter(prefix="/api/messages", tags=["messages"])


def _inbox(principal: Principal):
    return (
        Message.recipient_id == principal.id,
        Message.recipient_role == principal.role.value,
    )


@router.get("", response_model=Page[MessageOut])
def list_messages(
    principal: Principal = Depends(require_permission("messages", READ)),
    db: Session = Depends(get_db),
    page: int = Query(1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    unread_only: bool = False,
):
    filters = (*_inbox(principal), Message.is_read.is_(False)) if unread_only else ()
    stmt = scoped_select(principal, "messages", *filters)
    return Page[MessageOut].build(paginate(db, stmt, page, limit), MessageOut)


@router.get("/unread-count", response_model=UnreadCount)
def unread_count(
    principal: Principal = Depends(require_permission("messages", READ)),
    db: Session = Depends(get_db),
):
    count = db.execute(
        select(func.count(Message.id)).where(*_inbox(principal), Message.is_read.is_(False))
    ).scalar_one()
    return UnreadCount(count=count)


@router.post("", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: MessageCreate,
    principal: Principal = Depends(require_permission("messages", CREATE)),
    db: Session = Depends(get_db),
):
    if UserRepository(db).get(payload.recipient_id, payload.recipient_role) is None:
        raise NotFoundError("Recipient", payload.recipient_id)
    row = Message(
        sender_id=principal.id,
        sender_role=principal.role.value,
        recipient_id=payload.recipient_id,
        recipient_role=payload.recipient_role.value,
        subject=payload.subject,
        content=payload.content,
    )
    db.add(row)
    db.flush()
    log_audit(db, principal, "CREATE", "Message", row.id, {"recipient_id": payload.recipient_id})
    db.commit(); db.refresh(row)
    return row


@router.put("/{message_id}/read", response_model=MessageOut)
def mark_read(
    message_id: int,
    principal: Principal = Depends(require_permission("messages", READ)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "messages", message_id, "Message")
    if row.recipient_id != principal.id or row.recipient_role != principal.role.value:
        raise AuthorizationError("Only the recipient can mark a message as read")
    if not row.is_read:
        row.is_read = True
        db.commit(); db.refresh(row)
    return row


@router.delete("/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_message(
    message_id: int,
    principal: Principal = Depends(require_permission("messages", DELETE)),
    db: Session = Depends(get_db),
):
    row = get_visible(db, principal, "messages", message_id, "Message")
    db.delete(row)
    log_audit(db, principal, "DELETE", "Message", message_id)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
