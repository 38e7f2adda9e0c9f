"""
Diff Engine

Character-by-character comparison of typed text against the reference
paragraph. Pure and stateless; called on every keystroke and every tick.
"""

from collections import Counter
from typing import Dict, Iterable, Tuple

from ..schemas.assessment import CharacterComparison, CharacterState


def compare(reference: str, typed: str) -> Tuple[CharacterComparison, ...]:
    """
    Compare ``typed`` against ``reference`` position by position.

    The result always has ``len(reference)`` entries. Characters typed past
    the end of the reference are not represented here; the metrics
    calculator counts them as errors.

    Args:
        reference: The paragraph to reproduce (non-empty)
        typed: Candidate input so far (may be empty or longer than reference)

    Returns:
        One CharacterComparison per reference position

    Example:
        >>> [c.state.value for c in compare("cat", "cx")]
        ['correct', 'incorrect', 'current']
    """
    typed_len = len(typed)
    comparisons = []

    for i, expected in enumerate(reference):
        if i < typed_len:
            actual = typed[i]
            state = CharacterState.CORRECT if actual == expected else CharacterState.INCORRECT
        else:
            actual = None
            state = CharacterState.CURRENT if i == typed_len else CharacterState.PENDING

        comparisons.append(CharacterComparison(
            index=i,
            expected=expected,
            typed=actual,
            state=state,
        ))

    return tuple(comparisons)


def count_states(comparisons: Iterable[CharacterComparison]) -> Dict[CharacterState, int]:
    """Tally comparisons by state; every state is present in the result."""
    counts = Counter(c.state for c in comparisons)
    return {state: counts.get(state, 0) for state in CharacterState}


def overflow_length(reference: str, typed: str) -> int:
    """Number of characters typed beyond the end of the reference."""
    return max(0, len(typed) - len(reference))
