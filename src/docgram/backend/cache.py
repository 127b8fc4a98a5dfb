import logging
import threading

from docgram.backend.compiler import Compilation, compile_source, grammar_digest

__all__ = ['GrammarCache']

logger = logging.getLogger(__name__)


class GrammarCache:
    """Compiled grammars of one build, keyed by the content hash of their text.

    Safe to share between threads. Compilation runs outside the lock; when two threads compile the same
    text at once, the first result stored wins and both get it, so a text always maps to one object.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, Compilation] = {}

    def compile(self, text: str) -> Compilation:
        key = grammar_digest(text)
        with self._lock:
            cached = self._entries.get(key)
        if cached is not None:
            logger.debug("grammar cache hit: %s", key[:12])
            return cached

        logger.debug("grammar cache miss: %s", key[:12])
        compilation = compile_source(text)
        with self._lock:
            return self._entries.setdefault(key, compilation)

    def __contains__(self, text: str) -> bool:
        with self._lock:
            return grammar_digest(text) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
