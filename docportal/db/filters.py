from __future__ import annotations

from sqlalchemy import event, or_
from sqlalchemy.orm import Session, with_loader_criteria

from docportal.core.enums import DocumentStatus

SKIP_SCOPING = "docportal_skip_scoping"


@event.listens_for(Session, "do_orm_execute")
def _apply_authorization_filters(execute_state) -> None:
    """
    Transparent data scoping.

    Keeps query code unchanged:
        db.scalars(select(Document)).all()
    still returns only documents in the caller's viewable workspaces, and
    drafts only to their owner.
    """

    if not execute_state.is_select:
        return

    # Attribute refreshes and lazy loads of already-visible rows.
    if execute_state.is_column_load or execute_state.is_relationship_load:
        return

    authz = execute_state.session.info.get("authz")
    if authz is None:
        return

    # Writes that run their own authorization (status transitions) load unscoped.
    if execute_state.execution_options.get(SKIP_SCOPING, False):
        return

    # Local import to avoid cycles.
    from docportal.models.documents import Document  # noqa: WPS433 (local import)

    stmt = execute_state.statement

    if authz.filter_by_workspace:
        workspaces = list(authz.viewable_workspaces)
        stmt = stmt.options(
            with_loader_criteria(Document, Document.workspace.in_(workspaces)),
        )

    if authz.hide_foreign_drafts:
        owner_id = authz.user_id
        stmt = stmt.options(
            with_loader_criteria(
                Document,
                or_(Document.status != DocumentStatus.DRAFT, Document.created_by == owner_id),
            ),
        )

    execute_state.statement = stmt
