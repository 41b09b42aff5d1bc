"""Token counting for the chunk budget.

Counts come from a tiktoken encoder. The character/word heuristic is only used
when the encoder cannot be loaded or fails on a piece of text.
"""

from functools import lru_cache
from typing import Any, Optional

import tiktoken

from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

FALLBACK_ENCODING = "cl100k_base"


@lru_cache(maxsize=None)
def load_encoder(model: str) -> Optional[Any]:
    """tiktoken encoder for ``model``, or ``cl100k_base`` for unknown models.

    Returns None when no encoding can be loaded, for example when the BPE
    file cannot be fetched. Results are cached per model.
    """
    try:
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            LOGGER.debug(f"No tiktoken encoding for {model}, using {FALLBACK_ENCODING}")
            return tiktoken.get_encoding(FALLBACK_ENCODING)
    except Exception as e:
        LOGGER.warning(f"tiktoken encoder unavailable ({e}), counting tokens heuristically")
        return None


class TokenCounter:
    """Counts tokens the way the extraction model will see them.

    Attributes:
        model: Model whose encoding is used
        encoder: Anything with ``encode(text, disallowed_special=...)``
    """

    CHARS_PER_TOKEN = 4.0
    TOKENS_PER_WORD = 1.3

    def __init__(self, model: str = "gpt-3.5-turbo", encoder: Optional[Any] = None):
        self.model = model
        self.encoder = encoder if encoder is not None else load_encoder(model)

    def count_tokens(self, text: str) -> int:
        """Count tokens in text.

        Args:
            text: Text to count tokens for

        Returns:
            int: Token count
        """
        if not text:
            return 0

        if self.encoder is not None:
            try:
                return len(self.encoder.encode(text, disallowed_special=()))
            except Exception as e:
                LOGGER.warning(f"Token encoding failed ({e}), using the estimate")

        return self.estimate_tokens(text)

    def estimate_tokens(self, text: str) -> int:
        """Average of a characters-per-token and a tokens-per-word estimate."""
        char_estimate = len(text) / self.CHARS_PER_TOKEN
        word_estimate = len(text.split()) * self.TOKENS_PER_WORD
        return max(1, round((char_estimate + word_estimate) / 2))

    def can_fit_in_limit(self, text: str, limit: int) -> bool:
        return self.count_tokens(text) <= limit
