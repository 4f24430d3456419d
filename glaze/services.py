"""Wiring of the text services around one shared model-fallback manager."""

from dataclasses import dataclass
from typing import Any

from .assistant import FinanceAssistant
from .config import Settings, get_settings
from .extraction import TransactionExtractor
from .insight_service import DailyInsightService
from .providers.manager import ModelFallbackManager


@dataclass
class Services:
    manager: ModelFallbackManager | None
    extractor: TransactionExtractor
    assistant: FinanceAssistant
    insights: DailyInsightService


def build_services(settings: Settings | None = None, **manager_kwargs: Any) -> Services:
    """
    Create the extraction, chat and insight services.

    They share a single manager so the rate gate and the model cursor are
    common to all of them. Without an API key every service runs on its
    deterministic fallback.

    Args:
        settings: Settings to use, defaults to ``get_settings()``
        **manager_kwargs: Passed to ``ModelFallbackManager.from_settings``
            (clock, sleep, transport)
    """
    settings = settings or get_settings()
    manager = ModelFallbackManager.from_settings(settings, **manager_kwargs)
    return Services(
        manager=manager,
        extractor=TransactionExtractor(manager, default_amount=settings.parse_default_amount),
        assistant=FinanceAssistant(manager),
        insights=DailyInsightService(manager),
    )
