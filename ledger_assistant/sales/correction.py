"""
Correction Resolver

Right after a transaction is recorded the user may say "foi transporte"
to fix the category the AI guessed. This module decides whether a
message is such a correction and applies it.

CRITICAL: Without an active CorrectionContext nothing is a correction,
no matter the wording. "Foi ótimo" on its own is just chat.
"""

import re
import unicodedata
from typing import Optional

import structlog

from ledger_assistant.audit import AuditLogger
from ledger_assistant.models.context import CorrectionContext, TransactionRef
from ledger_assistant.models.ledger import LedgerCategory, LedgerEntry
from ledger_assistant.sales import replies
from ledger_assistant.sales.context_store import ContextStore
from ledger_assistant.services.storage import LedgerRepository, NotFoundError


logger = structlog.get_logger(__name__)


CORRECTION_KEYWORDS = [
    "foi", "era", "na verdade", "correto", "certo", "errado",
    "mudança", "mudar", "alterar", "corrigir", "correção",
    "não é", "nao é", "não era", "nao era",
]

# Loose vocabulary (accent-folded) -> canonical category.
# Every canonical value maps to itself as well.
CATEGORY_VOCABULARY: dict[str, LedgerCategory] = {
    **{c.value: c for c in LedgerCategory},
    # Casa
    "utilitarios": LedgerCategory.CASA,
    "utilidades": LedgerCategory.CASA,
    "domestico": LedgerCategory.CASA,
    "lar": LedgerCategory.CASA,
    "residencia": LedgerCategory.CASA,
    "moradia": LedgerCategory.CASA,
    "aluguel": LedgerCategory.CASA,
    # Alimentação
    "comida": LedgerCategory.ALIMENTACAO,
    "food": LedgerCategory.ALIMENTACAO,
    "restaurante": LedgerCategory.ALIMENTACAO,
    "lanche": LedgerCategory.ALIMENTACAO,
    # Supermercado
    "mercado": LedgerCategory.SUPERMERCADO,
    "grocery": LedgerCategory.SUPERMERCADO,
    # Transporte
    "uber": LedgerCategory.TRANSPORTE,
    "taxi": LedgerCategory.TRANSPORTE,
    "onibus": LedgerCategory.TRANSPORTE,
    "metro": LedgerCategory.TRANSPORTE,
    "gasolina": LedgerCategory.TRANSPORTE,
    "combustivel": LedgerCategory.TRANSPORTE,
    # Lazer
    "diversao": LedgerCategory.LAZER,
    "entretenimento": LedgerCategory.LAZER,
    "cinema": LedgerCategory.LAZER,
    "show": LedgerCategory.LAZER,
    "festa": LedgerCategory.LAZER,
    # Roupas
    "roupa": LedgerCategory.ROUPAS,
    "vestuario": LedgerCategory.ROUPAS,
    "calcado": LedgerCategory.ROUPAS,
    "sapato": LedgerCategory.ROUPAS,
    # Saúde
    "medico": LedgerCategory.SAUDE,
    "farmacia": LedgerCategory.SAUDE,
    "remedio": LedgerCategory.SAUDE,
    "hospital": LedgerCategory.SAUDE,
    # Educação
    "escola": LedgerCategory.EDUCACAO,
    "curso": LedgerCategory.EDUCACAO,
    "livro": LedgerCategory.EDUCACAO,
    "material": LedgerCategory.EDUCACAO,
    # Tecnologia
    "tech": LedgerCategory.TECNOLOGIA,
    "celular": LedgerCategory.TECNOLOGIA,
    "computador": LedgerCategory.TECNOLOGIA,
    "software": LedgerCategory.TECNOLOGIA,
    # Serviços
    "servico": LedgerCategory.SERVICOS,
    "manutencao": LedgerCategory.SERVICOS,
    "reparo": LedgerCategory.SERVICOS,
    "consultoria": LedgerCategory.SERVICOS,
    # Vendas
    "venda": LedgerCategory.VENDAS,
    # Outros
    "diverso": LedgerCategory.OUTROS,
    "variado": LedgerCategory.OUTROS,
}

_WORD = r"[a-záàâãéêíóôõúüç]+"
_ARTICLE = r"(?:(?:o|a|os|as|um|uma|de|do|da|no|na|em|com)\s+)?"

# Ordered, first match wins
CATEGORY_PATTERNS = [
    re.compile(rf"\bfoi\s+{_ARTICLE}({_WORD})"),
    re.compile(rf"\bera\s+{_ARTICLE}({_WORD})"),
    re.compile(rf"\bcategoria\s+{_ARTICLE}({_WORD})"),
    re.compile(rf"\bé\s+{_ARTICLE}({_WORD})"),
    re.compile(rf"^({_WORD})$"),
]

_KEYWORD_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(k) for k in CORRECTION_KEYWORDS) + r")\b"
)


def fold(text: str) -> str:
    """Lower-case and strip accents: 'Alimentação' -> 'alimentacao'."""
    decomposed = unicodedata.normalize("NFKD", text.lower().strip())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def lookup_category(token: str) -> Optional[LedgerCategory]:
    """
    Category for a vocabulary word, or None if it is not one.

    Tries an exact hit first, then a word that contains or is contained
    in a vocabulary key (plurals, "restaurantes", "supermercados").
    """
    key = fold(token)
    if not key:
        return None
    if key in CATEGORY_VOCABULARY:
        return CATEGORY_VOCABULARY[key]
    if len(key) < 3:
        return None
    for word, category in CATEGORY_VOCABULARY.items():
        if len(word) >= 4 and (word in key or key in word):
            return category
    return None


class CorrectionResolver:
    """
    Detects and applies category corrections to the last recorded transaction.

    The outer expense/revenue handlers call remember() after each write;
    the dispatcher calls is_correction() and resolve() on the next message.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        store: ContextStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._store = store
        self._audit_logger = audit_logger

    def remember(self, user_id: str, entry: LedgerEntry) -> CorrectionContext:
        """Open a correction window for a just-recorded entry."""
        context = CorrectionContext(transaction=TransactionRef.from_entry(entry))
        return self._store.set(user_id, context)

    def pending(self, user_id: str) -> Optional[CorrectionContext]:
        context = self._store.get(user_id)
        return context if isinstance(context, CorrectionContext) else None

    @staticmethod
    def map_category(text: str) -> LedgerCategory:
        """Map loose vocabulary to a canonical category; unknown input is OUTROS."""
        return lookup_category(text) or LedgerCategory.OUTROS

    @staticmethod
    def has_correction_keyword(text: str) -> bool:
        return bool(_KEYWORD_RE.search(text.lower()))

    @staticmethod
    def extract_category_token(text: str) -> Optional[str]:
        normalized = text.lower().strip()
        for pattern in CATEGORY_PATTERNS:
            found = pattern.search(normalized)
            if found:
                return found.group(1)

        folded = fold(normalized)
        for word in CATEGORY_VOCABULARY:
            if re.search(rf"\b{re.escape(word)}\b", folded):
                return word
        return None

    def is_correction(self, text: str, user_id: str) -> bool:
        """
        True when the message corrects the pending transaction.

        Requires an active CorrectionContext, then either an explicit
        correction keyword, or a single word naming a known category when
        the original transaction had no amount.
        """
        context = self.pending(user_id)
        if context is None:
            return False

        normalized = (text or "").lower().strip()
        if not normalized:
            return False
        if self.has_correction_keyword(normalized):
            return True

        words = normalized.split()
        amount = context.transaction.amount
        return (
            len(words) == 1
            and lookup_category(words[0]) is not None
            and not amount
        )

    async def resolve(self, user_id: str, text: str) -> str:
        """
        Apply the correction in `text` and answer with before/after.

        Leaves the context in place when no category can be read from the
        message. Raises StorageError when the update itself fails.
        """
        context = self.pending(user_id)
        if context is None:
            return replies.no_pending_correction()

        token = self.extract_category_token(text)
        if token is None:
            logger.info("correction_unclear", user_id=user_id, text=text)
            return replies.correction_unclear()

        new_category = self.map_category(token)
        transaction = context.transaction

        try:
            updated = await self._repository.update_ledger_entry(
                transaction.id,
                {"category": new_category},
            )
        except NotFoundError:
            logger.warning(
                "correction_target_missing",
                user_id=user_id,
                ledger_entry_id=transaction.id,
            )
            self._store.clear(user_id)
            return replies.correction_target_missing()

        self._store.clear(user_id)

        logger.info(
            "correction_applied",
            user_id=user_id,
            ledger_entry_id=transaction.id,
            old_category=transaction.category,
            new_category=new_category.value,
        )
        if self._audit_logger:
            await self._audit_logger.log_correction_applied(
                user_id=user_id,
                ledger_entry_id=transaction.id,
                old_category=transaction.category,
                new_category=new_category.value,
                user_input=text,
            )

        return replies.correction_applied(
            transaction.category,
            new_category,
            updated.amount if transaction.amount is None else transaction.amount,
            text.strip(),
        )
