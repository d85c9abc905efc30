"""Domain errors raised by services and mapped to HTTP responses in main."""


class TradeIntelError(Exception):
    """Base class for all domain errors."""

    status_code = 400


class NotFoundError(TradeIntelError):
    """Entity is missing or belongs to another user."""

    status_code = 404

    def __init__(self, entity: str, entity_id) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class InvalidStateError(TradeIntelError):
    """Operation is not allowed in the entity's current state."""

    status_code = 409


class LLMError(TradeIntelError):
    """The LLM provider failed or timed out."""

    status_code = 502


class ExtractionError(TradeIntelError):
    """Extraction produced no usable result for a message."""

    status_code = 422
