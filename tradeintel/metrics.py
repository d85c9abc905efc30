"""Prometheus metric definitions for Trade Intel.

Single source of truth for all custom metrics. Import from here in API and Celery code.
"""

from prometheus_client import Counter, Histogram

# --- Celery task metrics ---

celery_task_total = Counter(
    "tradeintel_celery_task_total",
    "Total Celery tasks executed",
    ["task_name", "status"],
)

# --- Pipeline metrics ---

messages_archived_total = Counter(
    "tradeintel_messages_archived_total",
    "Total inbound messages archived (duplicates excluded)",
)

messages_processed_total = Counter(
    "tradeintel_messages_processed_total",
    "Total messages run through the extraction pipeline by outcome",
    ["outcome"],
)

listings_created_total = Counter(
    "tradeintel_listings_created_total",
    "Total listings created by initial status",
    ["status"],
)

extraction_duration_seconds = Histogram(
    "tradeintel_extraction_duration_seconds",
    "LLM extraction latency in seconds",
    buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# --- Business metrics ---

review_actions_total = Counter(
    "tradeintel_review_actions_total",
    "Total review queue actions",
    ["action"],
)

notifications_sent_total = Counter(
    "tradeintel_notifications_sent_total",
    "Total notification deliveries by channel and outcome",
    ["channel", "outcome"],
)

chat_tool_calls_total = Counter(
    "tradeintel_chat_tool_calls_total",
    "Total tool invocations made by the chat agent",
    ["tool"],
)

llm_tokens_total = Counter(
    "tradeintel_llm_tokens_total",
    "Total LLM tokens consumed",
    ["model", "direction"],
)
