"""Reply contract engine: one model call, one well-formed reply."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.config import settings
from src.intake.contract import SYSTEM_PROMPT, StructuredReply, parse_contract
from src.llm.client import complete_with_timeout
from src.llm.models import ModelMalformed

if TYPE_CHECKING:
    from src.llm.client import ModelClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContractResult:
    """Raw model text alongside the reply derived from it.

    Attributes:
        raw: Exactly what the model returned; this is what gets persisted.
        reply: The parsed reply, or ``FALLBACK_REPLY`` when ``parsed_ok`` is False.
        parsed_ok: Whether ``raw`` satisfied the contract.
    """

    raw: str
    reply: StructuredReply
    parsed_ok: bool


class ReplyContractEngine:
    """Composes the prompt, calls the model, and enforces the reply contract.

    Transport errors from the model client are not caught here.
    """

    def __init__(
        self,
        client: ModelClient,
        *,
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self._client = client
        self._temperature = temperature if temperature is not None else settings.intake_temperature
        self._max_tokens = max_tokens if max_tokens is not None else settings.intake_max_tokens
        self._timeout = timeout if timeout is not None else settings.llm_timeout_seconds

    @staticmethod
    def build_messages(
        context: list[dict[str, str]], user_text: str
    ) -> list[dict[str, str]]:
        """System instruction, then prior context, then the new user turn."""
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            *context,
            {"role": "user", "content": user_text},
        ]

    async def generate(self, context: list[dict[str, str]], user_text: str) -> ContractResult:
        messages = self.build_messages(context, user_text)
        response = await complete_with_timeout(
            self._client,
            messages,
            temperature=self._temperature,
            max_tokens=self._max_tokens,
            timeout=self._timeout,
        )

        if isinstance(response, ModelMalformed):
            logger.warning("Model response was malformed; parsing raw body")

        reply, parsed_ok = parse_contract(response.text)
        return ContractResult(raw=response.text, reply=reply, parsed_ok=parsed_ok)
