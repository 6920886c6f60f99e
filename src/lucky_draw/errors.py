from __future__ import annotations


class LuckyDrawError(Exception):
    """Base class for every failure the ledger reports to a caller."""


class AuthorizationError(LuckyDrawError):
    pass


class NotWhitelisted(LuckyDrawError):
    pass


class PausedError(LuckyDrawError):
    pass


class InvalidDrawState(LuckyDrawError):
    pass


class DrawNotFound(InvalidDrawState):
    pass


class DrawNotOpen(InvalidDrawState):
    pass


class AlreadyEntered(InvalidDrawState):
    pass


class InvalidConfiguration(LuckyDrawError):
    pass


class InvalidToken(InvalidConfiguration):
    pass


class InvalidTierConfig(InvalidConfiguration):
    pass


class ProbabilityExceedsMax(InvalidConfiguration):
    pass


class InvalidAmount(InvalidConfiguration):
    pass


class InvalidAddress(InvalidConfiguration):
    pass


class InsufficientFunds(LuckyDrawError):
    pass


class UnknownRequest(LuckyDrawError):
    pass


class TokenError(LuckyDrawError):
    """Raised by token collaborators (balance or allowance too low)."""
