from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from docportal.core.enums import DocumentStatus, Workspace
from docportal.core.models import DocumentRef, utcnow
from docportal.db.base import Base
from docportal.models.security import User, WorkspaceColumn, enum_values, new_id

# Timestamps must agree with the status.
TIMESTAMP_CONSISTENCY = (
    "(status = 'draft' AND stored_at IS NULL AND archived_at IS NULL)"
    " OR (status = 'stored' AND stored_at IS NOT NULL AND archived_at IS NULL)"
    " OR (status = 'archived' AND stored_at IS NOT NULL AND archived_at IS NOT NULL)"
)


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (CheckConstraint(TIMESTAMP_CONSISTENCY, name="ck_documents_status_timestamps"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus, name="document_status", values_callable=enum_values, validate_strings=True),
        default=DocumentStatus.DRAFT,
        nullable=False,
        index=True,
    )
    workspace: Mapped[Workspace] = mapped_column(WorkspaceColumn, nullable=False, index=True)
    created_by: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    stored_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    owner: Mapped[User] = relationship()

    def to_ref(self) -> DocumentRef:
        return DocumentRef(
            id=self.id,
            status=self.status,
            owner_id=self.created_by,
            workspace=self.workspace,
            stored_at=self.stored_at,
            archived_at=self.archived_at,
        )
