"""
Daily insight card.

One card per local day: the hosted model writes it from the month-to-date
snapshot, the canned cards in ``analytics.insights`` cover every failure.
The card is cached in memory until the day changes or a refresh is forced.
"""

import json
import random
from collections.abc import Callable, Iterable
from datetime import date, datetime

from loguru import logger
from pydantic import ValidationError

from .analytics.insights import fallback_insight, financial_snapshot
from .extraction import strip_code_fences
from .models import DailyInsight, FinancialSnapshot, Transaction, Wallet
from .providers.base import MalformedResponseError, ProviderError
from .providers.manager import ModelFallbackManager


def build_insight_prompt(snapshot: FinancialSnapshot) -> str:
    return (
        'Role: Kamu adalah "Financial Bestie" untuk Gen Z. Karaktermu: Jujur, agak savage (pedas), '
        "pakai bahasa santai/gaul (lo-gue, anjay, menyala, red flag), tapi tetap solutif.\n"
        "\n"
        f"Input Data User: {json.dumps(snapshot.prompt_data())}\n"
        "\n"
        'Tugas: Analisis data keuangan user dan buat "Daily Card" pendek.\n'
        "Aturan Output:\n"
        '1. Jangan formal! Jangan pakai "Anda" atau "Saya".\n'
        "2. Gunakan Emoji yang relevan.\n"
        "3. Output HARUS JSON valid tanpa markdown.\n"
        "\n"
        "Pilih Tema berdasarkan kondisi keuangan:\n"
        '- Jika boros (>80% budget): Theme "danger" (Roasting abis-abisan, savage tapi supportive).\n'
        '- Jika hemat (<40% budget): Theme "success" (Puji setinggi langit/hype, kasih challenge ringan).\n'
        '- Jika biasa aja: Theme "info" (Kasih tips investasi/lifehack, prediksi spending).\n'
        "\n"
        "Format JSON (HANYA JSON, tanpa markdown code blocks):\n"
        '{"theme": "danger" | "success" | "info", "emoji": "single emoji", '
        '"title": "Headline pendek (max 4 kata)", "message": "Pesan menohok/lucu (max 2 kalimat)", '
        '"buttonText": "Action text pendek (2-3 kata)"}'
    )


def parse_insight_json(text: str) -> DailyInsight:
    """
    Raises:
        MalformedResponseError: If the reply is not a valid card
    """
    try:
        return DailyInsight.model_validate_json(strip_code_fences(text))
    except ValidationError as e:
        raise MalformedResponseError(
            message=f"Model response is not a valid insight card: {e.error_count()} errors",
            provider="gemini",
            content=text,
        ) from e


class DailyInsightService:
    """
    Produces and caches the daily insight card.

    Attributes:
        manager: Shared model-fallback manager, None without an API key
    """

    def __init__(
        self,
        manager: ModelFallbackManager | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.manager = manager
        self._rng = rng or random.Random()
        self._clock = clock or datetime.now
        self._cached: DailyInsight | None = None
        self._cached_on: date | None = None

    def clear_cache(self) -> None:
        self._cached = None
        self._cached_on = None

    async def _generate(self, snapshot: FinancialSnapshot, now: datetime) -> DailyInsight:
        if self.manager is None:
            logger.info("Gemini API key not configured, using fallback insight")
            return fallback_insight(snapshot, self._rng, now)

        try:
            card = await self.manager.complete(
                [{"role": "user", "content": build_insight_prompt(snapshot)}],
                parse=parse_insight_json,
            )
        except ProviderError as e:
            logger.warning("AI insight generation failed, using fallback", error_type=type(e).__name__)
            return fallback_insight(snapshot, self._rng, now)

        return card.model_copy(
            update={"top_category": snapshot.top_spending_category, "timestamp": now}
        )

    async def get_daily_insight(
        self,
        transactions: Iterable[Transaction],
        wallets: Iterable[Wallet],
        force_refresh: bool = False,
    ) -> DailyInsight:
        now = self._clock()
        if not force_refresh and self._cached is not None and self._cached_on == now.date():
            logger.debug("Using cached daily insight")
            return self._cached

        snapshot = financial_snapshot(transactions, wallets, now)
        logger.info("Generating new daily insight", budget_used_percent=snapshot.budget_used_percent)
        insight = await self._generate(snapshot, now)

        self._cached = insight
        self._cached_on = now.date()
        return insight
