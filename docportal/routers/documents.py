from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from docportal.core.enums import DocumentStatus, Workspace
from docportal.core.errors import TransitionReason
from docportal.core.lifecycle import DocumentLifecycle
from docportal.core.models import AuthenticatedUser
from docportal.db.filters import SKIP_SCOPING
from docportal.models.documents import Document
from docportal.schemas.documents import DocumentOut, StatusChangeOut, StatusChangeRequest
from docportal.security.dependencies import get_current_user, get_lifecycle, get_scoped_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])

STATUS_CONFLICT = "STATUS_CONFLICT"

_TRANSITION_ERRORS: dict[TransitionReason, tuple[int, str]] = {
    TransitionReason.ILLEGAL_TRANSITION: (
        status.HTTP_400_BAD_REQUEST,
        "This status change is not allowed.",
    ),
    TransitionReason.NOT_OWNER_AND_NO_PERMISSION: (
        status.HTTP_403_FORBIDDEN,
        "Only the owner or a user with permission on this workspace can change its status.",
    ),
}


@router.get("", response_model=list[DocumentOut])
def list_documents(
    status_filter: DocumentStatus | None = Query(default=None, alias="status"),
    workspace: Workspace | None = None,
    db: Session = Depends(get_scoped_db),
) -> list[Document]:
    # Workspace and draft-ownership scoping is applied by docportal/db/filters.py.
    stmt = select(Document)
    if status_filter is not None:
        stmt = stmt.where(Document.status == status_filter)
    if workspace is not None:
        stmt = stmt.where(Document.workspace == workspace)
    return list(db.scalars(stmt.order_by(Document.created_at.desc(), Document.id)).all())


@router.get("/{id}", response_model=DocumentOut)
def get_document(id: str, db: Session = Depends(get_scoped_db)) -> Document:
    document = db.scalars(select(Document).where(Document.id == id)).first()
    if document is None:
        # Documents outside the caller's scope look the same as missing ones.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return document


@router.put("/{id}/status", response_model=StatusChangeOut)
def change_status(
    id: str,
    body: StatusChangeRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    lifecycle: DocumentLifecycle = Depends(get_lifecycle),
    db: Session = Depends(get_scoped_db),
) -> StatusChangeOut:
    document = db.scalars(
        select(Document).where(Document.id == id).execution_options(**{SKIP_SCOPING: True})
    ).first()
    if document is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")

    ref = document.to_ref()
    decision = lifecycle.can_transition(ref, user.role, user.id, body.status)
    if not decision.allowed:
        status_code, message = _TRANSITION_ERRORS[decision.reason]
        raise HTTPException(
            status_code=status_code,
            detail={"code": decision.reason.value, "message": message, "details": []},
        )

    outcome = lifecycle.apply(ref, body.status)
    if outcome.changed:
        # Write only if the status is still the one the decision was made on.
        result = db.execute(
            update(Document)
            .where(Document.id == ref.id, Document.status == ref.status)
            .values(status=outcome.status, stored_at=outcome.stored_at, archived_at=outcome.archived_at)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            logger.info(
                "Document status change lost a race document_id=%s expected=%s by=%s",
                ref.id,
                ref.status.value,
                user.id,
            )
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={
                    "code": STATUS_CONFLICT,
                    "message": "The document status changed meanwhile. Reload and retry.",
                    "details": [],
                },
            )
        db.commit()
        db.refresh(document)
        logger.info(
            "Document status changed document_id=%s from=%s to=%s by=%s",
            document.id,
            ref.status.value,
            outcome.status.value,
            user.id,
        )

    return StatusChangeOut(document=DocumentOut.model_validate(document), changed=outcome.changed)
