"""
Word reconciliation for incremental dictation.

Turns the recognizer's stream of growing (and occasionally revised)
hypotheses into an append-only sequence of committed words. Each word is
emitted exactly once: the output sink types as it goes and cannot un-type.

    reconciler = WordReconciler()
    reconciler.reconcile(HypothesisUpdate("four"))              # ["four"]
    reconciler.reconcile(HypothesisUpdate("four score"))        # ["score"]
    reconciler.reconcile(HypothesisUpdate("four score"))        # []
"""

from typing import List, Optional, Sequence

from .types import HypothesisUpdate, split_words


class WordReconciler:
    """
    Commits words beyond what earlier hypotheses already produced.

    Tracks two counters:
    - `log`: words actually emitted (the CommittedWordLog)
    - `position`: hypothesis positions consumed, including skipped
      consecutive duplicates

    Not thread-safe. Updates must be applied one at a time, in order.
    """

    def __init__(self):
        self.log: List[str] = []
        self.position: int = 0

    def __len__(self) -> int:
        return len(self.log)

    def reconcile(self, update: Optional[HypothesisUpdate]) -> List[str]:
        """
        Commit any new words from a hypothesis.

        Words at indices already consumed are never re-evaluated, even if
        the recognizer has since revised them.

        Args:
            update: Latest hypothesis (partial or final). None or malformed
                text is treated as an empty update.

        Returns:
            Newly committed words, in order (possibly empty)
        """
        words = split_words(getattr(update, "text", None))

        if len(words) <= self.position:
            return []

        emitted: List[str] = []
        for word in words[self.position:]:
            # Consecutive duplicate: consume the position, don't commit
            if self.log and word == self.log[-1]:
                continue
            self.log.append(word)
            emitted.append(word)

        self.position = len(words)
        return emitted

    def commit_final(self, words: Sequence[str], position: int) -> None:
        """
        Record finalized tail words.

        Args:
            words: Words emitted by finalization (stored lowercased)
            position: Length of the final hypothesis the tail came from
        """
        self.log.extend(w.lower() for w in words)
        self.position = max(self.position, position)

    @property
    def last_word(self) -> Optional[str]:
        return self.log[-1] if self.log else None

    def committed_text(self) -> str:
        """All committed words as typed: space separated, trailing space."""
        if not self.log:
            return ""
        return " ".join(self.log) + " "

    def reset(self) -> None:
        self.log = []
        self.position = 0
