"""Exception types raised by the progress engine."""


class LearnQuestError(Exception):
    """Base class for all learn_quest errors."""


class ContractViolation(LearnQuestError, ValueError):
    """An input broke a function's contract (zero questions, negative counts, ...)."""


class QuizNotFoundError(LearnQuestError, LookupError):
    """A quiz required for a live operation is missing from the catalog."""
