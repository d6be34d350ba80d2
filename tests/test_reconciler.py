"""
Tests for WordReconciler.

Covers emit-once commitment, monotonic growth, consecutive-duplicate
suppression and malformed input.
"""


class TestReconcile:
    """Tests for WordReconciler.reconcile()."""

    def test_growing_hypotheses_emit_new_words_only(self):
        """Each call emits only the words beyond the previous hypothesis."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()

        assert reconciler.reconcile(HypothesisUpdate("four")) == ["four"]
        assert reconciler.reconcile(HypothesisUpdate("four score")) == ["score"]
        assert reconciler.reconcile(HypothesisUpdate("four score and")) == ["and"]
        assert reconciler.log == ["four", "score", "and"]

    def test_mixed_sequence_emits_exactly_the_log(self):
        """Grow, shrink, revise, duplicate and grow again: output only ever appends."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        sequence = [
            "the",
            "the cat",
            "the",                      # shrink
            "a cat sat",                # revise earlier words, grow
            "a cat sat sat",            # consecutive duplicate
            "a cat sat sat",            # repeat
            "",                         # empty
            "a cat sat sat on the mat",
            None,                       # malformed
            "a cat sat sat on the mat mat today",
        ]

        reconciler = WordReconciler()
        emitted = []
        previous_length = 0
        for text in sequence:
            update = HypothesisUpdate(text) if text is not None else None
            emitted.extend(reconciler.reconcile(update))
            assert len(reconciler.log) >= previous_length
            previous_length = len(reconciler.log)

        assert emitted == reconciler.log
        assert reconciler.log == ["the", "cat", "sat", "on", "the", "mat", "today"]

    def test_repeated_hypothesis_emits_nothing(self):
        """Applying the same update twice is a no-op the second time."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        reconciler.reconcile(HypothesisUpdate("hello world"))

        assert reconciler.reconcile(HypothesisUpdate("hello world")) == []
        assert reconciler.log == ["hello", "world"]

    def test_several_new_words_in_one_update(self):
        """A jump of several words emits them all, in order."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        reconciler.reconcile(HypothesisUpdate("the"))

        assert reconciler.reconcile(HypothesisUpdate("the quick brown fox")) == ["quick", "brown", "fox"]

    def test_shorter_hypothesis_is_ignored(self):
        """A hypothesis that shrinks never removes committed words."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        reconciler.reconcile(HypothesisUpdate("four score"))

        assert reconciler.reconcile(HypothesisUpdate("four")) == []
        assert reconciler.log == ["four", "score"]
        assert reconciler.position == 2

    def test_same_length_revision_emits_nothing(self):
        """A revised word at a consumed position is not re-typed."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        reconciler.reconcile(HypothesisUpdate("hello world"))

        assert reconciler.reconcile(HypothesisUpdate("hello there")) == []
        assert reconciler.log == ["hello", "world"]

    def test_revised_prefix_is_never_retracted(self):
        """Revisions to consumed positions are ignored; only new positions count."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        reconciler.reconcile(HypothesisUpdate("four score"))

        assert reconciler.reconcile(HypothesisUpdate("for score and")) == ["and"]
        assert reconciler.log == ["four", "score", "and"]

    def test_consecutive_duplicate_suppressed(self):
        """A new word equal to the last committed word is consumed but not committed."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        reconciler.reconcile(HypothesisUpdate("the cat"))

        assert reconciler.reconcile(HypothesisUpdate("the cat cat sat")) == ["sat"]
        assert reconciler.log == ["the", "cat", "sat"]
        assert reconciler.position == 4

    def test_skipped_duplicate_not_reconsidered(self):
        """Positions consumed by a skipped duplicate don't come back later."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        reconciler.reconcile(HypothesisUpdate("go go"))

        assert reconciler.log == ["go"]
        assert reconciler.reconcile(HypothesisUpdate("go go now")) == ["now"]

    def test_non_adjacent_repeat_is_kept(self):
        """Only consecutive duplicates are suppressed."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()

        assert reconciler.reconcile(HypothesisUpdate("the cat and the dog")) == [
            "the", "cat", "and", "the", "dog",
        ]

    def test_empty_and_malformed_updates(self):
        """None, empty and non-text updates are treated as empty."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        reconciler.reconcile(HypothesisUpdate("hello"))

        assert reconciler.reconcile(None) == []
        assert reconciler.reconcile(HypothesisUpdate("")) == []
        assert reconciler.reconcile(HypothesisUpdate("   ")) == []
        assert reconciler.reconcile(HypothesisUpdate(text=42)) == []
        assert reconciler.log == ["hello"]
        assert reconciler.position == 1

    def test_whitespace_runs_do_not_create_words(self):
        """Multiple spaces, tabs and newlines separate words without producing empty ones."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()

        assert reconciler.reconcile(HypothesisUpdate("  one \t two\nthree ")) == ["one", "two", "three"]

    def test_word_list_text_accepted(self):
        """A hypothesis given as a list of strings is joined then split."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()

        assert reconciler.reconcile(HypothesisUpdate(text=["good morning", "all"])) == ["good", "morning", "all"]


class TestCommitFinal:
    """Tests for recording the finalized tail."""

    def test_commit_final_lowercases_and_advances(self):
        """Final tail words are stored lowercased; position covers the final hypothesis."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        reconciler.reconcile(HypothesisUpdate("four score"))
        reconciler.commit_final(["And", "Seven"], 4)

        assert reconciler.log == ["four", "score", "and", "seven"]
        assert reconciler.position == 4

    def test_commit_final_never_moves_position_back(self):
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        reconciler.reconcile(HypothesisUpdate("one two three"))
        reconciler.commit_final([], 1)

        assert reconciler.position == 3

    def test_committed_text_and_reset(self):
        """Committed text has a trailing space; reset clears everything."""
        from localvoice.reconciler import WordReconciler
        from localvoice.types import HypothesisUpdate

        reconciler = WordReconciler()
        assert reconciler.committed_text() == ""

        reconciler.reconcile(HypothesisUpdate("four score and"))
        assert reconciler.committed_text() == "four score and "
        assert reconciler.last_word == "and"
        assert len(reconciler) == 3

        reconciler.reset()
        assert reconciler.log == []
        assert reconciler.position == 0
        assert reconciler.last_word is None
