"""
Reply Formatting

Every user-facing text the sales engine sends is built here, so the
handlers only decide WHAT to say.

Replies are Portuguese (the assistant's users write Portuguese) with
light Markdown; the chat transport renders or strips it.
"""

from decimal import Decimal
from typing import Optional, Sequence

from ledger_assistant.models.ledger import LedgerCategory, MatchCandidate, SaleRecord, money


CATEGORY_LABELS = {
    LedgerCategory.CASA: "Casa",
    LedgerCategory.ALIMENTACAO: "Alimentação",
    LedgerCategory.SUPERMERCADO: "Supermercado",
    LedgerCategory.TRANSPORTE: "Transporte",
    LedgerCategory.LAZER: "Lazer",
    LedgerCategory.ROUPAS: "Roupas",
    LedgerCategory.SAUDE: "Saúde",
    LedgerCategory.EDUCACAO: "Educação",
    LedgerCategory.TECNOLOGIA: "Tecnologia",
    LedgerCategory.SERVICOS: "Serviços",
    LedgerCategory.VENDAS: "Vendas",
    LedgerCategory.OUTROS: "Outros",
}

CONFIRM_OPTIONS = (
    '• Responda *"sim"* para confirmar\n'
    '• Envie outro valor (ex: *"85"* ou *"R$ 85,50"*) para alterar o preço\n'
    '• Responda *"não"* para cancelar'
)

GENERIC_RETRY = "❌ Erro ao registrar. Tente novamente em instantes."


def format_brl(amount: Optional[Decimal], symbol: str = "R$") -> str:
    """R$ 80.00"""
    return f"{symbol} {money(amount or 0):.2f}"


def format_percent(value: Decimal) -> str:
    return f"{Decimal(value):.1f}%"


def format_category(category) -> str:
    """Display label for a category value or enum; unknown values are title-cased."""
    try:
        return CATEGORY_LABELS[LedgerCategory(category)]
    except ValueError:
        return str(category).title()


# =============================================================================
# SALE CONFIRMATION
# =============================================================================

def confirm_price_prompt(product_name: str, price: Decimal, confidence: Optional[float] = None) -> str:
    header = f"📦 **Produto identificado:** {product_name}"
    if confidence is not None:
        header += f" ({round(confidence * 100)}% de confiança)"
    return (
        f"{header}\n"
        f"💰 **Preço de venda:** {format_brl(price)}\n\n"
        f"Registrar a venda por esse valor?\n{CONFIRM_OPTIONS}"
    )


def ask_price_prompt(product_name: str, in_catalog: bool) -> str:
    note = "" if in_catalog else "\n⚠️ Produto não encontrado no catálogo."
    return (
        f"📦 **Produto:** {product_name}{note}\n\n"
        f"💰 Por quanto foi vendido? Envie o valor (ex: *\"85\"* ou *\"R$ 85,50\"*).\n"
        f'Responda *"não"* para cancelar.'
    )


def unrecognized_reply(product_name: str, price: Optional[Decimal]) -> str:
    if price is None:
        return (
            f"🤔 Não entendi. Qual foi o valor da venda de **{product_name}**?\n"
            f'Envie só o número (ex: *"85"*) ou *"não"* para cancelar.'
        )
    return (
        f"🤔 Não entendi. Venda de **{product_name}** por {format_brl(price)}?\n"
        f"{CONFIRM_OPTIONS}"
    )


def sale_cancelled(product_name: str) -> str:
    return f"🚫 Venda de **{product_name}** cancelada. Nada foi registrado."


def empty_recognition() -> str:
    return (
        "🤔 Não consegui identificar o produto na imagem.\n"
        "Tente outra foto ou escreva, por exemplo: *\"vendi o fone por 80\"*."
    )


def sale_registered(record: SaleRecord) -> str:
    lines = [
        "✅ **Venda registrada!**",
        "",
        f"📦 **Produto:** {record.product_name}",
        f"💰 **Valor:** {format_brl(record.unit_price)}",
    ]
    if record.buyer_name:
        lines.append(f"👤 **Cliente:** {record.buyer_name}")
    profit_note = " (estimado)" if record.estimated else ""
    lines.append(
        f"📈 **Lucro:** {format_brl(record.profit)}{profit_note} "
        f"- margem {format_percent(record.margin_percent)}"
    )
    if not record.detail_recorded:
        lines.append("")
        lines.append(
            "⚠️ Venda registrada com aviso: o detalhe da venda não foi salvo."
        )
    return "\n".join(lines)


def validation_failed(reason: str) -> str:
    return f"⚠️ {reason}"


# =============================================================================
# CORRECTIONS
# =============================================================================

def correction_applied(old_category, new_category, amount: Optional[Decimal], user_input: str) -> str:
    return (
        "✅ **Categoria corrigida!**\n\n"
        f"📝 **Antes:** {format_category(old_category)}\n"
        f"🎯 **Agora:** {format_category(new_category)}\n"
        f"💰 **Valor:** {format_brl(amount)}\n\n"
        f'Entendi: "{user_input}" = {format_category(new_category)}'
    )


def correction_unclear() -> str:
    return (
        "🤔 **Não entendi a correção.**\n\n"
        "💡 Tente ser mais específico, por exemplo:\n"
        '• "Foi alimentação"\n'
        '• "Era transporte"\n'
        '• "Categoria casa"'
    )


def no_pending_correction() -> str:
    return "❌ Não há correção pendente. Registre uma nova transação."


def correction_target_missing() -> str:
    return "❌ A transação a corrigir não foi encontrada. Registre-a novamente."


# =============================================================================
# SALE FROM TEXT
# =============================================================================

def product_not_identified() -> str:
    return (
        "🤔 Não identifiquei o produto vendido.\n"
        'Exemplo: *"vendi o fone bluetooth por 80"*.'
    )


def product_suggestions(query: str, suggestions: Sequence[MatchCandidate]) -> str:
    lines = [f'🔍 Não encontrei "{query}" no catálogo. Você quis dizer:', ""]
    for i, candidate in enumerate(suggestions, start=1):
        lines.append(f"{i}. {candidate.entry.name} ({candidate.confidence}%)")
    lines.append("")
    lines.append("Repita a venda com o nome do produto, por exemplo:")
    lines.append(f'*"vendi {suggestions[0].entry.name} por 80"*')
    return "\n".join(lines)


def suggestion_reply_stub() -> str:
    return (
        "💡 Para registrar, repita a venda com o nome do produto e o valor.\n"
        'Exemplo: *"vendi o fone por 80"*.'
    )


# =============================================================================
# CATALOG AND REPORTS
# =============================================================================

def product_created(name: str) -> str:
    return (
        f"✅ Produto **{name}** criado!\n"
        "Defina preço de venda e custo na planilha para calcular o lucro real."
    )


def product_already_exists(name: str) -> str:
    return f"ℹ️ O produto **{name}** já existe no catálogo."


def create_product_usage() -> str:
    return 'Para criar um produto, envie: *"criar produto <nome>"*.'


def product_not_found(name: str) -> str:
    return f'🔍 Produto "{name}" não encontrado no catálogo.'


def sync_started() -> str:
    return "🔄 Sincronização de vendas solicitada. Os dados serão atualizados em instantes."


def which_product() -> str:
    return 'Qual produto? Exemplo: *"preço do fone bluetooth"*.'


def sync_unavailable() -> str:
    return "⚠️ Sincronização de vendas não está configurada."


def unknown_product_needs_price(name: str) -> str:
    return (
        f'🔍 Produto "{name}" não encontrado no catálogo.\n'
        f'Para registrar mesmo assim, informe o valor: *"vendi {name} por 80"*.'
    )
