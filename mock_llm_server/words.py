import itertools
import random
import uuid
from typing import Iterable, Optional, Protocol

# Lorem-style vocabulary, the same flavour of filler the reply words are drawn from.
VOCABULARY = (
    "lorem", "ipsum", "dolor", "sit", "amet", "consectetur", "adipiscing", "elit",
    "sed", "do", "eiusmod", "tempor", "incididunt", "ut", "labore", "et", "dolore",
    "magna", "aliqua", "enim", "ad", "minim", "veniam", "quis", "nostrud",
    "exercitation", "ullamco", "laboris", "nisi", "aliquip", "ex", "ea", "commodo",
    "consequat", "duis", "aute", "irure", "in", "reprehenderit", "voluptate",
    "velit", "esse", "cillum", "fugiat", "nulla", "pariatur", "excepteur", "sint",
    "occaecat", "cupidatat", "non", "proident", "sunt", "culpa", "qui", "officia",
    "deserunt", "mollit", "anim", "id", "est", "laborum", "quia", "voluptas",
    "aspernatur", "odit", "fugit", "eos", "ratione", "sequi", "nesciunt", "neque",
    "porro", "quisquam", "dolorem", "quaerat", "vero", "accusamus", "iusto",
    "dignissimos", "ducimus", "blanditiis", "praesentium", "deleniti", "atque",
    "corrupti", "quos", "dolores", "quas", "molestias", "excepturi", "occaecati",
)


class WordSource(Protocol):
    def next_word(self) -> str: ...

    def next_id(self) -> str: ...


class RandomWordSource:
    """Random filler words and UUID4 ids.

    Both come from one private generator, so passing a seed makes the whole
    reply, id included, reproducible.
    """

    def __init__(self, seed: Optional[int] = None, vocabulary: Iterable[str] = VOCABULARY):
        self._rng = random.Random(seed)
        self._vocabulary = tuple(vocabulary)
        if not self._vocabulary:
            raise ValueError("vocabulary must not be empty")

    def next_word(self) -> str:
        return self._rng.choice(self._vocabulary)

    def next_id(self) -> str:
        return str(uuid.UUID(int=self._rng.getrandbits(128), version=4))


class FixedWordSource:
    """Deterministic source for tests: cycles through the given words and ids."""

    def __init__(self, words: Iterable[str], ids: Iterable[str] = ("chatcmpl-fixed",)):
        words = tuple(words)
        if not words:
            raise ValueError("words must not be empty")
        self._words = itertools.cycle(words)
        ids = tuple(ids)
        if not ids:
            raise ValueError("ids must not be empty")
        self._ids = itertools.cycle(ids)

    def next_word(self) -> str:
        return next(self._words)

    def next_id(self) -> str:
        return next(self._ids)
