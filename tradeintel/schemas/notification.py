"""Notification rule schemas."""

from pydantic import BaseModel, Field

from tradeintel.models.notification_rule import NotificationRule


class NotificationRuleCreate(BaseModel):
    nl_rule: str = Field(..., min_length=1, max_length=2000)
    notify_email: str | None = Field(None, max_length=320)


class NotificationRuleUpdate(BaseModel):
    nl_rule: str | None = Field(None, min_length=1, max_length=2000)
    notify_email: str | None = Field(None, max_length=320)
    is_active: bool | None = None


class NotificationRuleResponse(BaseModel):
    id: str
    nl_rule: str
    parsed_intent: str | None
    parsed_keywords: list[str]
    parsed_category_ids: list[str]
    parsed_price_min: float | None
    parsed_price_max: float | None
    notify_channel: str
    notify_email: str | None
    is_active: bool
    last_triggered: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}

    @classmethod
    def from_rule(cls, rule: NotificationRule) -> "NotificationRuleResponse":
        return cls(
            id=str(rule.id),
            nl_rule=rule.nl_rule,
            parsed_intent=rule.parsed_intent.value if rule.parsed_intent else None,
            parsed_keywords=rule.parsed_keywords or [],
            parsed_category_ids=rule.parsed_category_ids or [],
            parsed_price_min=float(rule.parsed_price_min) if rule.parsed_price_min is not None else None,
            parsed_price_max=float(rule.parsed_price_max) if rule.parsed_price_max is not None else None,
            notify_channel=rule.notify_channel,
            notify_email=rule.notify_email,
            is_active=rule.is_active,
            last_triggered=rule.last_triggered.isoformat() if rule.last_triggered else None,
            created_at=rule.created_at.isoformat(),
            updated_at=rule.updated_at.isoformat(),
        )
