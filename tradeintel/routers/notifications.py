"""CRUD routes for natural-language notification rules."""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.config import Settings, get_settings
from tradeintel.dependencies import get_current_user_id, get_db
from tradeintel.schemas.notification import (
    NotificationRuleCreate,
    NotificationRuleResponse,
    NotificationRuleUpdate,
)
from tradeintel.services.ai_service import get_ai_service
from tradeintel.services.cost_tracking import CostTrackingService
from tradeintel.services.lookup_cache import get_lookup_caches
from tradeintel.services.notification_rule_service import NotificationRuleService
from tradeintel.services.rule_parser import RuleParser

router = APIRouter(prefix="/notifications", tags=["notifications"])


def get_rule_service(settings: Settings = Depends(get_settings)) -> NotificationRuleService:
    return NotificationRuleService(
        parser=RuleParser(get_ai_service(settings), settings),
        caches=get_lookup_caches(settings),
        cost_tracker=CostTrackingService(),
    )


@router.get("", response_model=list[NotificationRuleResponse])
async def list_rules(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: NotificationRuleService = Depends(get_rule_service),
):
    """List all notification rules for the current user."""
    return [NotificationRuleResponse.from_rule(r) for r in await service.list_rules(db, user_id)]


@router.post("", response_model=NotificationRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    body: NotificationRuleCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: NotificationRuleService = Depends(get_rule_service),
):
    """Create a rule from free text; the text is parsed into filters."""
    rule = await service.create(db, user_id, body.nl_rule, notify_email=body.notify_email)
    return NotificationRuleResponse.from_rule(rule)


@router.get("/{rule_id}", response_model=NotificationRuleResponse)
async def get_rule(
    rule_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: NotificationRuleService = Depends(get_rule_service),
):
    return NotificationRuleResponse.from_rule(await service.get(db, user_id, rule_id))


@router.patch("/{rule_id}", response_model=NotificationRuleResponse)
async def update_rule(
    rule_id: uuid.UUID,
    body: NotificationRuleUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: NotificationRuleService = Depends(get_rule_service),
):
    """Update a rule. Changing the text re-parses all filters."""
    rule = await service.update(
        db,
        user_id,
        rule_id,
        nl_rule=body.nl_rule,
        notify_email=body.notify_email,
        is_active=body.is_active,
    )
    return NotificationRuleResponse.from_rule(rule)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    service: NotificationRuleService = Depends(get_rule_service),
):
    """Deactivate a rule."""
    await service.deactivate(db, user_id, rule_id)
