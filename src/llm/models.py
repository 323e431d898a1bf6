"""Typed model responses.

Whatever shape the upstream returns is reduced to one of two cases at the
client boundary, so nothing past the client handles untyped JSON.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelSuccess:
    """Generated text found at the expected location."""

    text: str


@dataclass(frozen=True)
class ModelMalformed:
    """The upstream answered, but not in a recognised shape. ``raw`` is the stringified body."""

    raw: str

    @property
    def text(self) -> str:
        return self.raw


ModelResponse = ModelSuccess | ModelMalformed
