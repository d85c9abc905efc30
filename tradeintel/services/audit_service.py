"""Append-only audit trail for reviewer, rule and listing mutations."""

import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


async def write_audit_log(
    db: AsyncSession,
    user_id: uuid.UUID | None,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | str | None = None,
    metadata: dict[str, Any] | None = None,
) -> AuditLog:
    """Stage an audit entry in the caller's transaction.

    ``action`` is ``"<entity>.<verb>"`` (``"review.resolved"``). ``user_id``
    is None for pipeline and scheduled actions. Nothing is committed here;
    the entry lands or rolls back with the mutation it describes.
    """
    entry = AuditLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        extra_data=metadata or None,
    )
    db.add(entry)
    await db.flush()
    logger.debug("Audit %s on %s %s by %s", action, entity_type, entry.entity_id, user_id or "system")
    return entry
