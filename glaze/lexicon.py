"""
Static vocabularies for categories, wallets and Indonesian amount slang.

Keyword tables are ordered: the first entry with a matching keyword wins, so
extending the vocabulary never requires touching the parsing code.
"""

import re


DEFAULT_CATEGORY = "Other"
DEFAULT_WALLET = "Cash"
DEFAULT_ITEM = "Unknown Item"

# Display color per category
CATEGORY_COLORS: dict[str, str] = {
    "Food": "#F59E0B",
    "Drink": "#8B5CF6",
    "Transport": "#3B82F6",
    "Shopping": "#EC4899",
    "Entertainment": "#10B981",
    "Bills": "#EF4444",
    "Health": "#14B8A6",
    "Education": "#6366F1",
    "Subscription": "#F97316",
    "Other": "#6B7280",
}

# Icon name per category
CATEGORY_ICONS: dict[str, str] = {
    "Food": "fast-food",
    "Drink": "cafe",
    "Transport": "car",
    "Shopping": "cart",
    "Entertainment": "game-controller",
    "Bills": "receipt",
    "Health": "medkit",
    "Education": "school",
    "Subscription": "film",
    "Other": "pricetag",
}

# Closed vocabularies given to the hosted model
PROMPT_CATEGORIES = [
    "Food",
    "Transport",
    "Shopping",
    "Entertainment",
    "Bills",
    "Health",
    "Education",
    "Other",
]

PROMPT_WALLETS = ["BCA", "GoPay", "OVO", "Dana", "Cash", "ShopeePay", "LinkAja"]

# (pattern, multiplier) in priority order; a bare "k" must not run into a word
_NUMBER = r"(\d+(?:[.,]\d+)?)"
AMOUNT_PATTERNS: list[tuple[re.Pattern[str], int]] = [
    (re.compile(_NUMBER + r"\s*(?:jt|juta)", re.IGNORECASE), 1_000_000),
    (re.compile(_NUMBER + r"\s*(?:rb|ribu|k(?![a-z]))", re.IGNORECASE), 1_000),
    (re.compile(_NUMBER + r"\s*(?:rp|rupiah)?", re.IGNORECASE), 1),
]

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "Food": [
        "makan",
        "kopi",
        "nasi",
        "ayam",
        "mie",
        "bakso",
        "sate",
        "nongkrong",
        "starbucks",
        "kfc",
        "mcd",
    ],
    "Transport": [
        "grab",
        "gojek",
        "uber",
        "bensin",
        "parkir",
        "tol",
        "bus",
        "kereta",
        "ojol",
    ],
    "Shopping": [
        "beli",
        "belanja",
        "shopee",
        "tokped",
        "lazada",
        "baju",
        "sepatu",
    ],
    "Entertainment": [
        "nonton",
        "film",
        "bioskop",
        "netflix",
        "spotify",
        "game",
    ],
    "Bills": [
        "listrik",
        "air",
        "wifi",
        "pulsa",
        "tagihan",
        "bayar",
    ],
    "Health": [
        "obat",
        "dokter",
        "apotek",
        "rumah sakit",
        "vitamin",
    ],
}

WALLET_KEYWORDS: dict[str, list[str]] = {
    "GoPay": ["gopay", "gojek"],
    "OVO": ["ovo"],
    "Dana": ["dana"],
    "BCA": ["bca", "bank bca"],
    "ShopeePay": ["shopee", "shopeepay", "spay"],
    "LinkAja": ["linkaja"],
    "Cash": ["cash", "tunai", "uang"],
}

# Words that mark money coming in; everything else is an expense
INCOME_KEYWORDS = [
    "gaji",
    "salary",
    "terima",
    "bonus",
    "thr",
    "honor",
    "pendapatan",
    "transfer masuk",
    "dapat duit",
]


def category_color(name: str | None) -> str:
    """Display color for a category, the Other color when unknown."""
    return CATEGORY_COLORS.get(name or DEFAULT_CATEGORY, CATEGORY_COLORS[DEFAULT_CATEGORY])


def category_icon(name: str | None) -> str:
    """Icon for a category, the Other icon when unknown."""
    return CATEGORY_ICONS.get(name or DEFAULT_CATEGORY, CATEGORY_ICONS[DEFAULT_CATEGORY])


def match_keywords(text: str, table: dict[str, list[str]], default: str) -> str:
    """
    Return the first table key whose keywords occur in the text.

    Matching is a case-insensitive substring test.
    """
    lowered = text.lower()
    for name, keywords in table.items():
        if any(keyword in lowered for keyword in keywords):
            return name
    return default
