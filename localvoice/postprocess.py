"""
Finalization pipeline for the uncommitted tail of a session.

Words committed during recording are typed raw and never touched again.
At session end only the words beyond the committed position are enhanced:
low-confidence words are dropped, correction rules are applied, and the
text is capitalized.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from .errors import ConfigError
from .reconciler import WordReconciler
from .types import ConfigSnapshot, HypothesisUpdate, WordConfidence, split_words


# Context-independent homophone fixes, applied after user rules
HOMOPHONE_CORRECTIONS = [
    (r"\btheir going\b", "they're going"),
    (r"\byour going\b", "you're going"),
    (r"\bits a\b", "it's a"),
    (r"\bits been\b", "it's been"),
]

_SENTENCE_START = re.compile(r"([.!?]\s+)([a-z])")
_PRONOUN_I = re.compile(r"\bi\b")


@dataclass(frozen=True)
class CorrectionRule:
    """Compiled pattern -> replacement pair."""
    pattern: "re.Pattern"
    replacement: str


def compile_corrections(pairs: Sequence[Tuple[str, str]]) -> List[CorrectionRule]:
    """
    Compile correction pairs into case-insensitive rules, preserving order.

    Raises:
        ConfigError: if a pattern is not a valid regular expression
    """
    rules = []
    for pattern, replacement in pairs:
        try:
            compiled = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            raise ConfigError(f"Invalid correction pattern {pattern!r}: {e}") from e
        # Replacement is literal text, not a template
        rules.append(CorrectionRule(compiled, replacement.replace("\\", "\\\\")))
    return rules


def filter_by_confidence(
    words: Sequence[str],
    confidences: Sequence[Optional[float]],
    threshold: float,
) -> List[str]:
    """
    Drop words whose confidence is known and below threshold.

    `confidences` is aligned by index with `words`; missing entries or None
    mean "no data" and the word is kept.
    """
    kept = []
    for i, word in enumerate(words):
        confidence = confidences[i] if i < len(confidences) else None
        if confidence is not None and confidence < threshold:
            continue
        kept.append(word)
    return kept


def remove_consecutive_duplicates(words: Sequence[str], previous: Optional[str] = None) -> List[str]:
    """Remove words identical to the word right before them."""
    filtered = []
    for word in words:
        if word == previous:
            continue
        filtered.append(word)
        previous = word
    return filtered


def apply_corrections(text: str, rules: Sequence[CorrectionRule]) -> str:
    """Apply correction rules in order."""
    for rule in rules:
        text = rule.pattern.sub(rule.replacement, text)
    return text


def capitalize_text(text: str, proper_nouns: Sequence[str] = ()) -> str:
    """
    Capitalize sentences, the pronoun "I" and proper nouns.

    Examples:
        "i think so. maybe" -> "I think so. Maybe"
        "see you on monday" -> "See you on Monday"
    """
    if not text:
        return text

    capitalized = text[0].upper() + text[1:]

    capitalized = _SENTENCE_START.sub(
        lambda m: m.group(1) + m.group(2).upper(), capitalized
    )

    capitalized = _PRONOUN_I.sub("I", capitalized)

    for noun in proper_nouns:
        if not noun:
            continue
        regex = re.compile(rf"\b{re.escape(noun)}\b", re.IGNORECASE)
        capitalized = regex.sub(
            lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), capitalized
        )

    return capitalized


class PostProcessor:
    """
    Per-session finalization settings.

    Built at session start; an invalid rule set raises ConfigError there,
    before any audio is accepted.

    Usage:
        processor = PostProcessor(snapshot)
        tail = processor.finalize(final_hypothesis, reconciler)
    """

    def __init__(self, snapshot: ConfigSnapshot):
        self.min_confidence = snapshot.min_confidence
        self.auto_capitalize = snapshot.auto_capitalize
        self.error_corrections = snapshot.error_corrections
        self.remove_duplicates = snapshot.remove_duplicates
        self.proper_nouns = tuple(snapshot.proper_nouns)
        self.rules = compile_corrections(
            list(snapshot.corrections) + HOMOPHONE_CORRECTIONS
        )

    def finalize(self, final: Optional[HypothesisUpdate], reconciler: WordReconciler) -> str:
        """
        Produce the enhanced text for words not yet committed.

        Args:
            final: The recognizer's final hypothesis (None is treated as empty)
            reconciler: The session's reconciler; its committed words are
                never modified

        Returns:
            Text to append to output ("" if nothing survives)
        """
        words = split_words(getattr(final, "text", None))
        offset = reconciler.position
        tail = words[offset:]
        if not tail:
            return ""

        confidences = _aligned_confidences(getattr(final, "word_confidences", None))
        tail = filter_by_confidence(tail, confidences[offset:], self.min_confidence)

        if self.remove_duplicates:
            tail = remove_consecutive_duplicates(tail, reconciler.last_word)

        text = " ".join(tail)
        if not text:
            return ""

        if self.error_corrections:
            text = apply_corrections(text, self.rules)

        if self.auto_capitalize:
            text = capitalize_text(text, self.proper_nouns)

        return " ".join(text.split())


def _aligned_confidences(word_confidences: Optional[Sequence[WordConfidence]]) -> List[Optional[float]]:
    """Extract confidence values, mapping malformed entries to None."""
    if not word_confidences:
        return []
    values: List[Optional[float]] = []
    for item in word_confidences:
        confidence = getattr(item, "confidence", None)
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            confidence = None
        values.append(confidence)
    return values
