"""
Free-text extraction for the sales domain.

Pulls a product name, buyer name or price out of messages like
"vendi o fone bluetooth para o cliente Miguel por 80". The AI pre-parser
usually fills these in; these patterns are the fallback when it does not.
"""

import re
from decimal import Decimal
from typing import Optional

from ledger_assistant.sales.confirmation import parse_price


_LETTERS = r"a-záàâãéêíóôõúüç"

# "vendi 3 fones por 80": the count is not part of the name
_QUANTITY = r"(?:\d+\s+)?"

PRODUCT_PATTERNS = [
    # "venda do fone lenovo gm pro por 67" -> "fone lenovo gm pro"
    re.compile(
        rf"(?:venda|vendi|vendeu|comprou)\s+{_QUANTITY}(?:(?:do|da|de|o|a)\s+)?([^0-9]+?)\s+(?:por|de|em|r\$)\s*[0-9]"
    ),
    # "registrar venda lenovo 58 reais" -> "lenovo"
    re.compile(rf"(?:registrar\s+venda|venda)\s+{_QUANTITY}([^0-9]+?)\s+[0-9]"),
    # "estoque do mouse gamer" -> "mouse gamer"
    re.compile(rf"(?:estoque|tem|quantos)\s+(?:(?:do|da|de|o|a)\s+)?([{_LETTERS}\s]+?)\s*$"),
    # "mouse gamer disponível" -> "mouse gamer"
    re.compile(rf"([{_LETTERS}\s]+?)\s+(?:disponível|disponivel|em estoque)"),
]

# Sale messages without a price: "vendi o fone bluetooth", "vendi um mouse para o joão"
SALE_WITHOUT_PRICE_PATTERN = re.compile(
    rf"(?:vendi|vendeu|venda)\s+{_QUANTITY}(?:(?:do|da|de|o|a|um|uma)\s+)?([{_LETTERS}0-9\s]+?)"
    rf"(?:\s+(?:para|pra)\s+.*)?$"
)

PRODUCT_FILLER = re.compile(r"\b(?:do|da|de|o|a|um|uma|cliente|para|pra)\b")

# "fone para o cliente miguel" -> "fone", "mouse em estoque" -> "mouse"
_PRODUCT_TAIL = re.compile(r"\s+(?:(?:para|pra)\s+.*|em estoque|no estoque|disponível|disponivel)$")

# "fone custou 80", "fone r$ 80", "fone 80 reais" -> "fone"
_PRICE_TAIL = re.compile(r"\s+(?:(?:por|custou|r\$)\s*[0-9][0-9.,]*(?:\s*reais)?|[0-9][0-9.,]*\s*reais)$")

COMMON_PRODUCTS = [
    "fone", "fones", "headphone", "earphone",
    "projetor", "projetores",
    "camera", "câmera", "cameras",
    "mouse", "teclado", "keyboard",
    "celular", "smartphone", "telefone",
    "tablet", "ipad",
    "notebook", "laptop",
    "carregador", "cabo",
    "caixa de som", "speaker",
    "smartwatch", "relógio",
]

BUYER_PATTERNS = [
    # "venda para o cliente miguel" -> "miguel"
    re.compile(rf"(?:para|pra)\s+(?:(?:o|a)\s+)?cliente\s+([{_LETTERS}]+(?:\s+[{_LETTERS}]+)?)", re.IGNORECASE),
    # "cliente joão comprou" -> "joão"
    re.compile(rf"cliente\s+([{_LETTERS}\s]+?)\s+(?:comprou|levou)", re.IGNORECASE),
    # "vendi para maria" -> "maria"
    re.compile(rf"(?:vendeu|vendi)\s+(?:\S+\s+)*?para\s+(?:(?:o|a)\s+)?([{_LETTERS}]+)", re.IGNORECASE),
    # "joão comprou" -> "joão"
    re.compile(rf"([{_LETTERS}]+)\s+(?:comprou|levou|pegou)", re.IGNORECASE),
]

BUYER_FILLER = re.compile(r"\b(?:do|da|de|o|a|um|uma|por|reais?|cliente)\b", re.IGNORECASE)

CREATE_PATTERNS = [
    re.compile(r"criar\s+produto\s+(.+)"),
    re.compile(r"criar\s+(.+)"),
]

QUERY_PATTERNS = [
    # "preço do fone bluetooth", "quanto custa o mouse", "estoque do teclado"
    re.compile(
        rf"(?:preço|preco|valor|custa|custo|margem|detalhes|informações|informacoes|estoque|quantidade)"
        rf"\s+(?:(?:do|da|de|o|a|dos|das)\s+)?([{_LETTERS}0-9\s]+?)\s*\??$"
    ),
    # "quantos fones tem em estoque"
    re.compile(rf"quant[oa]s?\s+([{_LETTERS}0-9\s]+?)\s+(?:tem|há|ha|temos)\b"),
]


def _squash(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _clean_product(raw: str) -> str:
    name = _PRICE_TAIL.sub("", raw.strip())
    name = _PRICE_TAIL.sub("", _PRODUCT_TAIL.sub("", name))
    return _squash(PRODUCT_FILLER.sub(" ", name))


def extract_product_name(text: Optional[str]) -> Optional[str]:
    """Product mentioned in a sale or stock message, or None."""
    if not text:
        return None
    normalized = text.lower().strip()

    for pattern in (*PRODUCT_PATTERNS, SALE_WITHOUT_PRICE_PATTERN):
        found = pattern.search(normalized)
        if found:
            name = _clean_product(found.group(1))
            if len(name) > 2:
                return name

    for product in COMMON_PRODUCTS:
        if re.search(rf"\b{re.escape(product)}\b", normalized):
            return product
    return None


def extract_buyer_name(text: Optional[str]) -> Optional[str]:
    """Buyer mentioned in a sale message, title-cased, or None."""
    if not text:
        return None

    for pattern in BUYER_PATTERNS:
        found = pattern.search(text)
        if found:
            name = _squash(BUYER_FILLER.sub(" ", found.group(1)))
            if len(name) > 1:
                return name.title()
    return None


def extract_sale_price(text: Optional[str]) -> Optional[Decimal]:
    """Price at the end of a sale message ("... por 80", "... 58 reais")."""
    return parse_price(text)


def extract_create_product_name(text: Optional[str]) -> Optional[str]:
    """Name in "criar produto X" or "criar X"."""
    if not text:
        return None
    normalized = text.lower().strip()
    for pattern in CREATE_PATTERNS:
        found = pattern.search(normalized)
        if found:
            name = found.group(1).strip()
            if len(name) > 1:
                return name
    return None


def extract_query_product_name(text: Optional[str]) -> Optional[str]:
    """Product asked about in a price, detail or stock question, or None."""
    if not text:
        return None
    normalized = text.lower().strip()
    for pattern in QUERY_PATTERNS:
        found = pattern.search(normalized)
        if found:
            name = _squash(PRODUCT_FILLER.sub(" ", found.group(1)))
            name = re.sub(r"\s+(?:em estoque|no estoque|tem|temos)$", "", name)
            if len(name) > 2 and name not in {"produto", "produtos", "estoque"}:
                return name
    return None
