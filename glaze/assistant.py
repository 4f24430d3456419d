"""
Conversational finance assistant.

Chat turns are grounded in a caller-supplied summary of recent transactions
and share the rate gate, model fallback and retry policy of the extraction
service. Replies are plain text: markdown markers are stripped before they
reach the chat bubble.
"""

import re

from loguru import logger

from .providers.base import ProviderError, RetryBudgetExhaustedError
from .providers.manager import ModelFallbackManager, redact_sensitive_data


GREETING = (
    "Halo! Aku Glaze AI 💜 Asisten keuanganmu yang siap bantu track spending "
    "dan kasih tips hemat. Mau tanya apa nih?"
)

CONNECTION_ERROR_REPLY = "Maaf, ada masalah dengan koneksi. Coba lagi ya! 🙏"

DEMO_FALLBACK_REPLY = (
    "Aku dalam mode demo nih. Tambahkan Gemini API key di .env untuk fitur AI lengkap! 🤖"
)

# (keywords, reply) in priority order
DEMO_RESPONSES: list[tuple[tuple[str, ...], str]] = [
    (
        ("spending", "pengeluaran"),
        "Dari data kamu, pengeluaran terbesar ada di kategori Food nih. Coba kurangi jajan di luar ya! 💡",
    ),
    (
        ("saving", "nabung", "tips"),
        "Tips hemat: coba sisihkan 20% gaji di awal bulan ke rekening terpisah. Small steps, big impact! 🎯",
    ),
    (
        ("budget", "goal"),
        "Kamu sudah pakai 65% dari budget bulanan. Masih aman sih, tapi tetap hati-hati ya! 📊",
    ),
    (
        ("trend",),
        "Spending trend kamu stabil kok bulan ini. Keep up the good work! 📈",
    ),
]

_MARKDOWN_RULES: list[tuple[re.Pattern[str], str]] = [
    # bullets first so the italic rules never pair up two list markers
    (re.compile(r"^[ \t]*[-*+][ \t]+", re.MULTILINE), "• "),
    (re.compile(r"^[ \t]*#+[ \t]*", re.MULTILINE), ""),
    (re.compile(r"(\s)#+\s+"), r"\1"),
    (re.compile(r"\*\*(.*?)\*\*"), r"\1"),
    (re.compile(r"\*(.*?)\*"), r"\1"),
    (re.compile(r"__(.*?)__"), r"\1"),
    (re.compile(r"_(.*?)_"), r"\1"),
    (re.compile(r"`([^`]*)`"), r"\1"),
]


def strip_markdown(text: str) -> str:
    """
    Remove markdown emphasis, inline code and headings; turn list markers into bullets.

    >>> strip_markdown("**Hemat** itu _keren_\\n- nabung")
    'Hemat itu keren\\n• nabung'
    """
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def build_system_prompt(context: str | None = None) -> str:
    if context:
        data_block = f"DATA KEUANGAN USER:\n{context}"
    else:
        data_block = "User belum punya data transaksi."

    return (
        "Kamu adalah Glaze AI ✨, asisten keuangan yang super friendly dan gaul!\n"
        "\n"
        "Kepribadian kamu:\n"
        "- Suka pakai emoji yang relevan (tapi jangan berlebihan)\n"
        '- Pakai bahasa casual + slang Indo ("nih", "sih", "dong", "wkwk", "btw", "gak", "banget")\n'
        "- Suportif dan encouraging, tapi juga honest\n"
        "- Suka kasih tips praktis yang actionable\n"
        "- Kalau user berhasil hemat, kasih apresiasi! 🎉\n"
        "\n"
        "ATURAN PENTING:\n"
        "- Jawab SINGKAT dan to the point (2-3 kalimat max, kecuali diminta detail)\n"
        "- JANGAN pakai markdown formatting seperti ** atau __ atau # atau * untuk list\n"
        "- Gunakan emoji sebagai pengganti bullet points kalau perlu\n"
        "- Langsung ke point, jangan basa-basi\n"
        "\n"
        f"{data_block}"
    )


def build_chat_messages(message: str, context: str | None = None) -> list[dict[str, str]]:
    """Persona prompt and greeting as the opening turns, then the user's message."""
    return [
        {"role": "user", "content": build_system_prompt(context)},
        {"role": "assistant", "content": GREETING},
        {"role": "user", "content": message},
    ]


def demo_chat_response(message: str) -> str:
    lowered = message.lower()
    for keywords, reply in DEMO_RESPONSES:
        if any(keyword in lowered for keyword in keywords):
            return reply
    return DEMO_FALLBACK_REPLY


class FinanceAssistant:
    """Chat service; ``chat`` always resolves with a reply."""

    def __init__(self, manager: ModelFallbackManager | None = None):
        self.manager = manager

    async def chat(self, message: str, context: str | None = None) -> str:
        if self.manager is None:
            logger.info("Gemini API key not configured, using demo chat response")
            return demo_chat_response(message)

        try:
            raw_reply = await self.manager.complete(build_chat_messages(message, context))
        except RetryBudgetExhaustedError:
            return demo_chat_response(message)
        except ProviderError as e:
            logger.error(
                "Chat request failed",
                error_type=type(e).__name__,
                error=redact_sensitive_data(str(e)),
            )
            return CONNECTION_ERROR_REPLY

        reply = strip_markdown(raw_reply)
        return reply or demo_chat_response(message)
