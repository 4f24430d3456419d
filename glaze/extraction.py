"""
Free-text transaction extraction.

Turns input like "Ngopi 25rb pake gopay" into a ParsedTransactionCandidate.
The hosted model is tried first; the deterministic parser answers when no
API key is configured or the model cannot produce a valid result.
"""

import json
import math
import re
from functools import partial

from loguru import logger
from pydantic import ValidationError

from .analytics.aggregation import round_half_up
from .lexicon import (
    AMOUNT_PATTERNS,
    CATEGORY_KEYWORDS,
    DEFAULT_CATEGORY,
    DEFAULT_ITEM,
    DEFAULT_WALLET,
    INCOME_KEYWORDS,
    PROMPT_CATEGORIES,
    PROMPT_WALLETS,
    WALLET_KEYWORDS,
    match_keywords,
)
from .models import ParsedTransactionCandidate, TransactionType
from .providers.base import MalformedResponseError
from .providers.manager import ModelFallbackManager


DEFAULT_AMOUNT = 50000

_CODE_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def capitalize_first(word: str) -> str:
    return word[:1].upper() + word[1:]


def extract_amount(text: str, default: int = DEFAULT_AMOUNT) -> int:
    """
    First amount found in the text, in Rupiah.

    "1,5jt" -> 1500000, "25rb" -> 25000, "50k" -> 50000, "50000 rp" -> 50000.
    Returns ``default`` when the text has no usable number.
    """
    for pattern, multiplier in AMOUNT_PATTERNS:
        match = pattern.search(text)
        if match:
            amount = float(match.group(1).replace(",", ".")) * multiplier
            # digit runs too long for a float
            if not math.isfinite(amount):
                continue
            return round_half_up(amount)
    return default


def guess_category(text: str) -> str:
    return match_keywords(text, CATEGORY_KEYWORDS, DEFAULT_CATEGORY)


def detect_wallet(text: str) -> str:
    return match_keywords(text, WALLET_KEYWORDS, DEFAULT_WALLET)


def guess_type(text: str) -> TransactionType:
    lowered = text.lower()
    if any(keyword in lowered for keyword in INCOME_KEYWORDS):
        return TransactionType.INCOME
    return TransactionType.EXPENSE


def heuristic_parse(text: str, default_amount: int = DEFAULT_AMOUNT) -> ParsedTransactionCandidate:
    """Deterministic parse used without a hosted model. Never raises."""
    words = text.lower().split()
    return ParsedTransactionCandidate(
        item=capitalize_first(words[0]) if words else DEFAULT_ITEM,
        amount=extract_amount(text, default_amount),
        category=guess_category(text),
        source_wallet=detect_wallet(text),
        type=guess_type(text),
    )


def build_extraction_prompt(text: str) -> str:
    return (
        "You are a financial transaction parser for an Indonesian expense tracker app.\n"
        f'Parse this transaction text: "{text}"\n'
        "\n"
        "Rules:\n"
        "- Extract item name, amount in IDR, category, payment source and type\n"
        '- Indonesian slang: "rb"/"ribu" = thousand (x1000), "jt"/"juta" = million (x1000000)\n'
        "- A comma is a decimal separator: \"1,5jt\" = 1500000\n"
        '- Examples: "25rb" = 25000, "1,5jt" = 1500000, "50k" = 50000\n'
        f"- Categories: {', '.join(PROMPT_CATEGORIES)}\n"
        f"- Wallets: {', '.join(PROMPT_WALLETS)}\n"
        f"- Default wallet is {DEFAULT_WALLET} if not specified\n"
        '- type is "income" for money received (salary, bonus, transfer in), otherwise "expense"\n'
        "\n"
        "Return ONLY valid JSON (no markdown):\n"
        '{"item": string, "amount": number, "category": string, "source_wallet": string, '
        '"type": "income" | "expense"}'
    )


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text).strip()


def parse_candidate_json(text: str) -> ParsedTransactionCandidate:
    """
    Parse the model's reply into a candidate.

    Raises:
        MalformedResponseError: If no JSON object is found or fields are invalid
    """
    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        json_match = _JSON_OBJECT.search(cleaned)
        if not json_match:
            raise MalformedResponseError(
                message="JSON payload not found in model response",
                provider="gemini",
                content=text,
            )
        try:
            payload = json.loads(json_match.group(0))
        except json.JSONDecodeError as e:
            raise MalformedResponseError(
                message=f"Invalid JSON in model response: {e}",
                provider="gemini",
                content=text,
            ) from e

    if not isinstance(payload, dict):
        raise MalformedResponseError(
            message="Model response is not a JSON object",
            provider="gemini",
            content=text,
        )

    try:
        return ParsedTransactionCandidate.model_validate(payload)
    except ValidationError as e:
        raise MalformedResponseError(
            message=f"Model response does not match the candidate schema: {e.error_count()} errors",
            provider="gemini",
            content=text,
        ) from e


class TransactionExtractor:
    """
    Text-to-transaction service.

    ``parse_transaction_text`` always resolves with a usable candidate.
    """

    def __init__(
        self,
        manager: ModelFallbackManager | None = None,
        default_amount: int = DEFAULT_AMOUNT,
    ):
        self.manager = manager
        self.default_amount = default_amount

    async def parse_transaction_text(self, text: str) -> ParsedTransactionCandidate:
        if self.manager is None:
            logger.info("Gemini API key not configured, using heuristic parser")
            return heuristic_parse(text, self.default_amount)

        candidate, heuristic_candidate = await self.manager.complete_with_heuristic_fallback(
            messages=[{"role": "user", "content": build_extraction_prompt(text)}],
            heuristic_fn=partial(heuristic_parse, default_amount=self.default_amount),
            parse=parse_candidate_json,
            heuristic_input=text,
            temperature=0.3,
        )
        if candidate is not None:
            logger.info(
                "AI parse succeeded",
                model=self.manager.current_model,
                category=candidate.category,
            )
            return candidate
        return heuristic_candidate
