"""Prompt templates and JSON schemas for the LLM-backed services."""

EXTRACTION_PROMPT = """You extract structured trade listings from chat messages posted in trading groups.

Known categories: {categories}
Known manufacturers (aliases in parentheses): {manufacturers}
Known jargon: {jargon}

Message:
---
{text}
---

Respond ONLY in JSON:
{{
  "intent": "sell" | "want" | "unknown",
  "items": [
    {{
      "description": "string",
      "category": "string or null",
      "manufacturer": "string or null",
      "part_number": "string or null",
      "model_name": "string or null",
      "quantity": number or null,
      "unit": "string or null",
      "price": number or null,
      "currency": "ISO 4217 code or null",
      "condition": "string or null",
      "dial_color": "string or null",
      "case_material": "string or null",
      "year": "string or null",
      "case_size_mm": number or null,
      "set_composition": "string or null",
      "bracelet_strap": "string or null"
    }}
  ],
  "unknown_terms": ["string"],
  "confidence": 0.0 to 1.0
}}

Rules:
- intent is "sell" when the sender offers items, "want" when looking to buy
- Use one entry in items per distinct physical item offered or requested
- category and manufacturer must be taken from the known lists when they match; otherwise give your best name
- Do NOT invent prices, part numbers or quantities not present in the message
- unknown_terms lists abbreviations or slang you could not interpret
- If the message is chit-chat with no trade content, return intent "unknown", empty items and confidence below 0.3
- confidence reflects how certain you are that the whole extraction is correct"""

EXTRACTION_HINT_PROMPT = """A reviewer is correcting an earlier automated extraction of a trade message.

Original message:
---
{text}
---

Previous extraction:
{previous}

Reviewer hint: {hint}

Known categories: {categories}
Known manufacturers (aliases in parentheses): {manufacturers}

Produce a corrected extraction that follows the reviewer hint. Respond ONLY in JSON using exactly the
same structure as the previous extraction: intent, items, unknown_terms, confidence."""

EXTRACTION_SCHEMA = {
    "type": "object",
    "required": ["intent", "items", "confidence"],
    "properties": {
        "intent": {"type": ["string", "null"]},
        "items": {"type": "array", "items": {"type": "object"}},
        "unknown_terms": {"type": ["array", "null"], "items": {"type": "string"}},
        "confidence": {"type": "number"},
    },
}

RULE_PARSER_PROMPT = """Convert this trade alert request into structured filter criteria.

Alert request: "{rule_text}"

Respond ONLY in JSON:
{{
  "intent": "sell" | "want" | null,
  "keywords": ["string"],
  "category_names": ["string"],
  "price_min": number or null,
  "price_max": number or null
}}

Rules:
- intent is "sell" when the user wants to hear about items offered for sale, "want" for buy requests
- keywords are the brand, model and part identifiers a matching listing description would contain
- category_names only when the request names a product category
- "under X" sets price_max, "over X" or "above X" sets price_min
- Use null for anything not mentioned"""

CHAT_SYSTEM_PROMPT = """You are a trade intelligence assistant for a team that buys and sells goods through chat groups.
You answer questions about listings, messages and market activity using the tools below.

To use a tool, reply with ONLY a JSON object of the form:
{"tool": "<tool name>", "params": {...}}

Available tools:
- search_listings: params {"query": string, "intent": "sell"|"want", "priceMin": number, "priceMax": number}
- search_messages: params {"query": string, "groupId": string, "sender": string}
- market_stats: params {}
- get_listing_details: params {"id": "<listing uuid>"}
- create_notification: params {"rule": "<natural-language alert description>"}

All params are optional unless stated. Use at most one tool per reply. If no tool is needed, answer directly.
Be concise and quote prices with their currency."""

TOOL_RESULT_PROMPT = """Tool result for {tool}:
{result}

Please provide a helpful response based on this data."""
