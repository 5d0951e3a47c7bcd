"""
Document status state machine.

    draft <-> stored <-> archived

``draft -> archived`` and ``archived -> draft`` are never legal. A transition
to the current status is an allowed no-op.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from .enums import Action, DocumentStatus, Role
from .errors import TransitionReason
from .models import Clock, DocumentRef, utcnow
from .permissions import PermissionResolver

logger = logging.getLogger(__name__)

# (from, to) -> actions that let a non-owner perform the transition
_TRANSITIONS: dict[tuple[DocumentStatus, DocumentStatus], tuple[Action, ...]] = {
    (DocumentStatus.DRAFT, DocumentStatus.STORED): (Action.MANAGE,),
    (DocumentStatus.STORED, DocumentStatus.DRAFT): (Action.MANAGE,),
    (DocumentStatus.STORED, DocumentStatus.ARCHIVED): (Action.ARCHIVE,),
    (DocumentStatus.ARCHIVED, DocumentStatus.STORED): (Action.ARCHIVE, Action.MANAGE),
}


@dataclass(frozen=True)
class TransitionDecision:
    allowed: bool
    reason: TransitionReason | None = None


@dataclass(frozen=True)
class TransitionOutcome:
    """New status and timestamps for a document after a transition."""

    status: DocumentStatus
    stored_at: datetime | None
    archived_at: datetime | None
    changed: bool


ALLOWED = TransitionDecision(allowed=True)


def is_legal(current: DocumentStatus, target: DocumentStatus) -> bool:
    return current == target or (current, target) in _TRANSITIONS


class DocumentLifecycle:
    def __init__(self, resolver: PermissionResolver, clock: Clock = utcnow) -> None:
        self._resolver = resolver
        self._clock = clock

    def can_transition(
        self,
        document: DocumentRef,
        actor_role: Role | str,
        actor_id: str,
        target: DocumentStatus,
    ) -> TransitionDecision:
        """
        Decide whether ``actor_id`` (holding ``actor_role``) may move
        ``document`` to ``target``.

        Legality is checked before anything about the actor, so an illegal
        edge is reported as such even to the owner.
        """

        current = document.status
        if current == target:
            return ALLOWED

        required = _TRANSITIONS.get((current, target))
        if required is None:
            logger.info(
                "Transition rejected: illegal document_id=%s from=%s to=%s",
                document.id,
                current.value,
                target.value,
            )
            return TransitionDecision(allowed=False, reason=TransitionReason.ILLEGAL_TRANSITION)

        if actor_id == document.owner_id:
            return ALLOWED

        try:
            permitted = any(
                self._resolver.can_perform(actor_role, action, document.workspace) for action in required
            )
        except Exception:
            logger.exception("Transition check failed document_id=%s; denying", document.id)
            permitted = False

        if permitted:
            return ALLOWED

        logger.info(
            "Transition denied document_id=%s actor_id=%s from=%s to=%s",
            document.id,
            actor_id,
            current.value,
            target.value,
        )
        return TransitionDecision(allowed=False, reason=TransitionReason.NOT_OWNER_AND_NO_PERMISSION)

    def apply(
        self,
        document: DocumentRef,
        target: DocumentStatus,
        now: datetime | None = None,
    ) -> TransitionOutcome:
        """
        Compute the status and timestamps after moving to ``target``.

        Pure bookkeeping: callers must have obtained an allowed decision from
        ``can_transition`` first. Raises ValueError for an illegal edge.
        """

        current = document.status
        if current == target:
            return TransitionOutcome(current, document.stored_at, document.archived_at, changed=False)
        if not is_legal(current, target):
            raise ValueError(f"illegal transition {current.value} -> {target.value}")

        when = now if now is not None else self._clock()

        if target is DocumentStatus.DRAFT:
            return TransitionOutcome(target, None, None, changed=True)

        if target is DocumentStatus.STORED:
            # Coming back from archived keeps the original storage time.
            stored_at = when if current is DocumentStatus.DRAFT else (document.stored_at or when)
            return TransitionOutcome(target, stored_at, None, changed=True)

        return TransitionOutcome(target, document.stored_at or when, when, changed=True)
