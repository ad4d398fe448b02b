import json
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import List

from openai import OpenAI, OpenAIError
from pydantic import ValidationError as PydanticValidationError

from . import config
from .errors import ExtractionError, ReceiptParseError
from .schemas import ReceiptItem

logger = logging.getLogger(__name__)

PROMPT = """Analyze this shopping receipt and extract all food items. For each item, provide:
- name (lowercase, singular form)
- quantity (as a number)
- unit (e.g., pieces, bottles, kg, etc.)
- estimated days until expiry (reasonable estimate based on item type)

Return ONLY a valid JSON array in this exact format:
[{"name": "tomato", "quantity": 3, "unit": "pieces", "expiry_days": 5}]

Do not include any other text or explanation."""

DEMO_ITEMS = [
    {"name": "tomato", "quantity": 3, "unit": "pieces", "expiry_days": 5},
    {"name": "apple", "quantity": 6, "unit": "pieces", "expiry_days": 7},
    {"name": "milk", "quantity": 1, "unit": "bottle", "expiry_days": 5},
    {"name": "bread", "quantity": 1, "unit": "loaf", "expiry_days": 3},
]

_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")


def parse_items(text: str) -> List[ReceiptItem]:
    """Pull the item list out of a model reply.

    The reply should be a bare JSON array, but models like to wrap it in
    prose or code fences, so the outermost ``[...]`` span is used if there
    is one.
    """
    match = _JSON_ARRAY.search(text or "")
    candidate = match.group(0) if match else (text or "")
    try:
        data = json.loads(candidate)
        if not isinstance(data, list):
            raise ValueError("expected a JSON array")
        return [ReceiptItem.model_validate(item) for item in data]
    except (ValueError, PydanticValidationError) as exc:
        logger.debug("unparsable receipt reply: %r", text)
        raise ReceiptParseError(
            "Could not parse items from receipt"
        ) from exc


class ReceiptExtractor(ABC):
    """Turns a receipt image into a list of items."""

    @abstractmethod
    def extract(self, image: str) -> List[ReceiptItem]:
        """Return the items on the receipt or raise ExtractionError."""


class OpenRouterExtractor(ReceiptExtractor):
    """Vision-model extraction through OpenRouter's OpenAI-compatible API."""

    def __init__(self, api_key=None, model=None, base_url=None, client=None):
        self.api_key = api_key if api_key is not None \
            else config.OPENROUTER_API_KEY
        self.model = model or config.OPENROUTER_MODEL
        self.base_url = base_url or config.OPENROUTER_BASE_URL
        self._client = client

    def _get_client(self):
        if self._client is None:
            if not self.api_key:
                raise ExtractionError(
                    "OPENROUTER_API_KEY is not set; use demo mode instead"
                )
            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                default_headers={"X-Title": "Fridge Manager"},
            )
        return self._client

    def extract(self, image: str) -> List[ReceiptItem]:
        client = self._get_client()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[{
                    "role": "user",
                    "content": [
                        {"type": "text", "text": PROMPT},
                        {"type": "image_url", "image_url": {"url": image}},
                    ],
                }],
            )
        except OpenAIError as exc:
            logger.warning("receipt extraction call failed: %s", exc)
            raise ExtractionError(
                "Error processing receipt. Please try again."
            ) from exc
        if not response.choices:
            raise ExtractionError("Receipt extraction returned no answer")
        items = parse_items(response.choices[0].message.content)
        logger.info("extracted %d item(s) from receipt", len(items))
        return items


class DemoExtractor(ReceiptExtractor):
    """Offline stand-in that returns a fixed list after a short pause."""

    def __init__(self, delay=None):
        self.delay = config.RECEIPT_DEMO_DELAY if delay is None else delay

    def extract(self, image: str) -> List[ReceiptItem]:
        if self.delay > 0:
            time.sleep(self.delay)
        return [ReceiptItem.model_validate(item) for item in DEMO_ITEMS]
