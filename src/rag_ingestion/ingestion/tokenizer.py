"""Tokenizer adapters used to enforce chunk size limits."""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

import tiktoken

from rag_ingestion.exceptions import ConfigurationError


@runtime_checkable
class Tokenizer(Protocol):
    """Anything that can turn text into token ids and back.

    ``decode`` raises :class:`UnicodeDecodeError` when *tokens* start or
    end inside a character; chunk boundaries are moved until it does not.
    """

    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: Sequence[int]) -> str: ...


class TiktokenTokenizer:
    """``tiktoken`` encoding looked up by model name (``gpt-4`` → ``cl100k_base``).

    Pass *encoding* to use a prebuilt :class:`tiktoken.Encoding` instead of
    the one registered for *model*.
    """

    def __init__(self, model: str = "gpt-4", encoding: tiktoken.Encoding | None = None) -> None:
        if encoding is not None:
            self._encoding = encoding
        else:
            try:
                self._encoding = tiktoken.encoding_for_model(model)
            except KeyError:
                try:
                    self._encoding = tiktoken.get_encoding(model)
                except ValueError as exc:
                    raise ConfigurationError(f"Unknown tokenizer model: {model!r}") from exc
        self.model = model

    def encode(self, text: str) -> list[int]:
        return self._encoding.encode(text, disallowed_special=())

    def decode(self, tokens: Sequence[int]) -> str:
        # byte-level BPE splits multi-byte characters across tokens
        return self._encoding.decode(list(tokens), errors="strict")


def count_tokens(tokenizer: Tokenizer, text: str) -> int:
    return len(tokenizer.encode(text))


def try_decode(tokenizer: Tokenizer, tokens: Sequence[int]) -> str | None:
    """Decode *tokens*, or return ``None`` when they split a character."""
    try:
        return tokenizer.decode(tokens)
    except UnicodeDecodeError:
        return None
