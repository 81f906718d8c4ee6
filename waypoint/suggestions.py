"""
Typo-tolerant command suggestions.

Scoring
- levenshtein_distance(a, b): minimum number of single-character insertions,
  deletions or substitutions turning a into b (classic cost-1 recurrence).
- similarity(a, b): 1 - distance / max(len(a), len(b)) over lower-cased operands,
  so it always lies in [0, 1]; two empty strings are identical (1.0).

Ranking
- SuggestionEngine scores every candidate, drops the ones under min_similarity,
  keeps the candidates' relative order among equal scores (stable sort) and caps
  the result at max_suggestions.

Example
    >>> engine = SuggestionEngine()
    >>> engine.find_similar_commands("tets", ["test", "build", "deploy"])
    ['test']
"""
import numbers


def levenshtein_distance(a, b, /):
    """
    Edit distance between two strings over a (len(a)+1) x (len(b)+1) table.
    """
    if not isinstance(a, str) or not isinstance(b, str):
        raise TypeError("levenshtein_distance() arguments must be strings")

    matrix = [[row] + [0] * len(b) for row in range(len(a) + 1)]
    matrix[0] = list(range(len(b) + 1))

    for row in range(1, len(a) + 1):
        for column in range(1, len(b) + 1):
            if a[row - 1] == b[column - 1]:
                matrix[row][column] = matrix[row - 1][column - 1]
            else:
                matrix[row][column] = 1 + min(
                    matrix[row - 1][column - 1],  # substitution
                    matrix[row][column - 1],      # insertion
                    matrix[row - 1][column],      # deletion
                )

    return matrix[len(a)][len(b)]


def similarity(a, b, /):
    """
    Normalized, case-insensitive similarity between two strings in [0, 1].
    """
    a, b = a.lower(), b.lower()
    if not (length := max(len(a), len(b))):
        return 1.0
    return 1 - levenshtein_distance(a, b) / length


class SuggestionEngine:
    """
    Rank known command names by similarity to an unrecognized input.

    Parameters
    - max_suggestions: int >= 1, caps the length of the result list (default 3).
    - min_similarity: number in [0, 1], filters weak matches (default 0.4).
    - include_aliases: bool, whether alias strings join the candidate pool that
      the dispatcher builds from the registry (default True).

    The engine is immutable and holds no per-call state, so a single instance can
    be shared by every dispatch.
    """
    __slots__ = ("_max_suggestions", "_min_similarity", "_include_aliases")

    def __init__(self, max_suggestions=3, min_similarity=0.4, *, include_aliases=True):
        if isinstance(max_suggestions, bool) or not isinstance(max_suggestions, int):
            raise TypeError("suggestion engine 'max_suggestions' must be an integer")
        elif max_suggestions < 1:
            raise ValueError("suggestion engine 'max_suggestions' must be a positive integer")

        if isinstance(min_similarity, bool) or not isinstance(min_similarity, numbers.Real):
            raise TypeError("suggestion engine 'min_similarity' must be a number")
        elif not 0 <= min_similarity <= 1:
            raise ValueError("suggestion engine 'min_similarity' must be between 0 and 1")

        self._max_suggestions = max_suggestions
        self._min_similarity = float(min_similarity)
        self._include_aliases = bool(include_aliases)

    @property
    def max_suggestions(self):
        return self._max_suggestions

    @property
    def min_similarity(self):
        return self._min_similarity

    @property
    def include_aliases(self):
        return self._include_aliases

    def __repr__(self):
        return "suggestion-engine(max_suggestions=%r, min_similarity=%r, include_aliases=%r)" % (
            self.max_suggestions, self.min_similarity, self.include_aliases
        )

    def find_similar_commands(self, input, candidates, /):
        """
        Return at most max_suggestions candidate names, best match first.

        Every returned name scores at least min_similarity against input. Equal
        scores keep the candidates' original relative order; a candidate listed
        twice is only scored once.
        """
        if not isinstance(input, str):
            raise TypeError("find_similar_commands() first argument must be a string")

        scores = []
        for candidate in dict.fromkeys(candidates):
            if not isinstance(candidate, str):
                raise TypeError("find_similar_commands() candidates must be strings")
            if (score := similarity(input, candidate)) >= self.min_similarity:
                scores.append((candidate, score))

        scores.sort(key=lambda pair: pair[1], reverse=True)
        return [candidate for candidate, _ in scores[:self.max_suggestions]]

    def generate_suggestion_message(self, input, candidates, /):
        """
        Build the user-facing "command not found" message for input.

        Without suggestions:
            Command "x" not found. No similar commands found.
        With suggestions (one indented line each):
            Command "tets" not found. Did you mean:
                test
        """
        if not (suggestions := self.find_similar_commands(input, candidates)):
            return f'Command "{input}" not found. No similar commands found.'

        return f'Command "{input}" not found. Did you mean:\n' + "\n".join(
            f"    {suggestion}" for suggestion in suggestions
        )


__all__ = (
    "levenshtein_distance",
    "similarity",
    "SuggestionEngine",
)
