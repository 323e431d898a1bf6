"""Test doubles shared across test modules."""

from src.llm.models import ModelResponse, ModelSuccess


class FakeModelClient:
    """Returns queued responses (repeating the last) and records every request."""

    def __init__(self, *responses: ModelResponse | str) -> None:
        self._responses = [ModelSuccess(r) if isinstance(r, str) else r for r in responses]
        self.calls: list[dict] = []

    async def complete(self, messages, *, temperature, max_tokens):
        self.calls.append(
            {"messages": list(messages), "temperature": temperature, "max_tokens": max_tokens}
        )
        if len(self._responses) > 1:
            return self._responses.pop(0)
        return self._responses[0]
