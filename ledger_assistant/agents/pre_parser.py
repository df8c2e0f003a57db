"""
Message Pre-Parser

Turns a raw chat message into a MessageAnalysis: a best-effort guess at
intent, amount, category, product and buyer.

CRITICAL BOUNDARIES:
- The model's output is a HINT. The sales engine re-checks everything
  with its own keyword rules and must work when every hint is missing.
- `description` is always the user's own text, never the model's
  rewording of it.
- Any model failure (network, quota, malformed JSON) degrades to the
  passthrough result. Parsing never raises.

The LLM is a TRANSLATOR, not an ORACLE.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

import google.generativeai as genai
import structlog

from ledger_assistant.config import get_settings
from ledger_assistant.models.ledger import MessageAnalysis


logger = structlog.get_logger(__name__)

KNOWN_INTENTS = [
    "registrar_venda",
    "nova_venda",
    "sincronizar_vendas",
    "consultar_estoque",
    "consultar_produto",
    "consultar_vendas",
    "relatorio_vendas",
    "outro",
]


class MessagePreParser(ABC):
    """Produces AI hints for one message."""

    @abstractmethod
    async def parse(self, text: str) -> MessageAnalysis:
        """Analyse a message. Must not raise."""


class PassthroughPreParser(MessagePreParser):
    """No AI: only the raw text, every hint left empty."""

    async def parse(self, text: str) -> MessageAnalysis:
        return MessageAnalysis(description=text or "")


class GeminiPreParser(MessagePreParser):
    """
    Asks Gemini for a JSON analysis of the message.

    BOUNDARIES:
    - NEVER writes anything
    - NEVER invents a product that is not in the message
    """

    def __init__(self, model: Optional[Any] = None):
        """
        Args:
            model: A configured GenerativeModel. Built from GEMINI_*
                   settings when omitted.
        """
        self._model = model if model is not None else self._configure_genai()
        self._fallback = PassthroughPreParser()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        settings = get_settings().gemini
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )

    def _build_prompt(self, text: str) -> str:
        return f"""You are pre-parsing a message sent to a bookkeeping assistant for a small Brazilian seller.
The message is in Portuguese.

Message: "{text}"

Known intents: {', '.join(KNOWN_INTENTS)}

Respond with ONLY a JSON object in this exact format:
{{"intent": "intent_name", "amount": 80.0, "category": "category or null", "product_name": "product or null", "buyer_name": "buyer or null"}}

Important:
- Use null for anything not stated in the message
- Never guess a product or buyer that is not written in the message
- amount is the money value mentioned, as a number"""

    @staticmethod
    def _extract_json(raw: str) -> Optional[dict]:
        start = raw.find("{")
        end = raw.rfind("}") + 1
        if start < 0 or end <= start:
            return None
        data = json.loads(raw[start:end])
        return data if isinstance(data, dict) else None

    async def parse(self, text: str) -> MessageAnalysis:
        try:
            response = await self._model.generate_content_async(self._build_prompt(text))
            data = self._extract_json(response.text.strip())
            if data is None:
                logger.warning("pre_parser_no_json", text=text)
                return await self._fallback.parse(text)

            intent = data.get("intent")
            return MessageAnalysis(
                description=text,
                intent=intent if intent in KNOWN_INTENTS else None,
                amount=data.get("amount"),
                category=data.get("category") or None,
                product_name=data.get("product_name") or None,
                buyer_name=data.get("buyer_name") or None,
            )
        except Exception as e:
            # Fallback to keyword-only handling
            logger.warning("pre_parser_failed", error=str(e))
            return await self._fallback.parse(text)
