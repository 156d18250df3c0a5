"""Deterministic stand-ins for embedding and chat providers used across the tests."""

import asyncio
import math
import re
from typing import Callable, List, Optional, Sequence

from knowledge_base.modules.common.exceptions import InvalidInput, ProviderUnavailable

VOCABULARY = ("cat", "dog", "fish", "bird", "tree", "car", "sun")
DIMENSION = len(VOCABULARY) + 1


def similar_vector(similarity: float, dimension: int = DIMENSION) -> List[float]:
    """Unit vector whose cosine similarity to ``axis_vector()`` is exactly ``similarity``."""
    vector = [0.0] * dimension
    vector[0] = similarity
    vector[1] = math.sqrt(max(0.0, 1.0 - similarity**2))
    return vector


def axis_vector(dimension: int = DIMENSION) -> List[float]:
    vector = [0.0] * dimension
    vector[0] = 1.0
    return vector


class KeywordEmbeddingProvider:
    """One dimension per vocabulary word, counting occurrences, plus a small bias.

    Texts sharing words get similar vectors; texts sharing none are nearly orthogonal.
    """

    name = "keywords"

    def __init__(
        self,
        batch_size: int = 16,
        fail_on: Optional[str] = None,
        error_factory: Callable[[str], Exception] = InvalidInput,
        transient_failures: int = 0,
        delay: float = 0.0,
        dimension: int = DIMENSION,
    ):
        self._batch_size = batch_size
        self.fail_on = fail_on
        self.error_factory = error_factory
        self.transient_failures = transient_failures
        self.delay = delay
        self.dimension = dimension
        self.calls: List[List[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @property
    def max_batch_size(self) -> int:
        return self._batch_size

    def vector_for(self, text: str) -> List[float]:
        words = re.findall(r"[a-z]+", text.lower())
        vector = [float(words.count(word)) for word in VOCABULARY] + [0.1]
        return (vector + [0.0] * self.dimension)[: self.dimension]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.transient_failures > 0:
                self.transient_failures -= 1
                raise ProviderUnavailable("provider briefly unavailable")
            if self.fail_on is not None and any(self.fail_on in text for text in texts):
                raise self.error_factory(f"cannot embed text containing '{self.fail_on}'")
            return [self.vector_for(text) for text in texts]
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True


class FixedVectorProvider:
    """Returns the same vector for every text."""

    name = "fixed"

    def __init__(self, vector: Sequence[float]):
        self.vector = list(vector)
        self.calls = 0

    @property
    def max_batch_size(self) -> int:
        return 64

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        return [list(self.vector) for _ in texts]

    async def aclose(self) -> None:
        return None


class RecordingChatModel:
    """Chat model that answers with a canned reply and keeps the prompts it saw."""

    def __init__(self, reply: str = "Cats sleep most of the day."):
        self.reply = reply
        self.prompts: List[List[dict]] = []

    async def complete(self, messages: List[dict]) -> str:
        self.prompts.append(messages)
        return self.reply

    async def aclose(self) -> None:
        return None
