"""Exception types for the compounding engine.

Every error aborts the whole top-level operation; nothing here is retried
internally. The hierarchy mirrors the four failure families:

- validation errors (caller-fixable)
- fixed-point arithmetic errors (fatal to the call)
- external-dependency errors (oracle, venue, token and custody collaborators)
- internal invariant violations (engine bugs; never recovered from)
"""

from __future__ import annotations


class CompounderError(Exception):
    """Base class for every error raised by the engine."""


# -- Validation ---------------------------------------------------------------

class ValidationError(CompounderError):
    """Raised when a request fails a caller-fixable precondition."""


class UnknownPosition(ValidationError):
    def __init__(self, position_id: int) -> None:
        self.position_id = position_id
        super().__init__(f"unknown position: {position_id}")


class NotPositionOwner(ValidationError):
    def __init__(self, position_id: int, caller: str) -> None:
        self.position_id = position_id
        self.caller = caller
        super().__init__(f"{caller} does not own position {position_id}")


class NotOperator(ValidationError):
    """Raised when a governance setter is called by anyone but the operator."""


class IdenticalTokens(ValidationError):
    """Raised when both sides of a pair are the same token."""


class DeadlineTooFar(ValidationError):
    def __init__(self, deadline: int, latest: int) -> None:
        self.deadline = deadline
        self.latest = latest
        super().__init__(f"deadline {deadline} is beyond the allowed horizon {latest}")


class ZeroAmount(ValidationError):
    """Raised when a withdrawal asks for nothing."""


class CapacityExceeded(ValidationError):
    def __init__(self, owner: str, limit: int) -> None:
        self.owner = owner
        self.limit = limit
        super().__init__(f"{owner} already holds the maximum of {limit} positions")


class PositionAlreadyRegistered(ValidationError):
    def __init__(self, position_id: int) -> None:
        self.position_id = position_id
        super().__init__(f"position already registered: {position_id}")


class InvalidParameter(ValidationError):
    """Raised when a governed parameter update breaks its cap."""


class InsufficientBalance(ValidationError):
    def __init__(self, account: str, token: str, balance: int, requested: int) -> None:
        self.account = account
        self.token = token
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"insufficient balance of {token} for {account}: {balance} < {requested}"
        )


# -- Arithmetic ---------------------------------------------------------------

class FixedPointError(CompounderError, ArithmeticError):
    """Raised when checked integer arithmetic leaves the uint256 domain."""


class ArithmeticOverflow(FixedPointError):
    pass


class ArithmeticUnderflow(FixedPointError):
    pass


class ZeroDenominator(FixedPointError):
    """Division by a denominator that must never be zero."""


# -- External dependencies ----------------------------------------------------

class ExternalDependencyError(CompounderError):
    """Raised by (or on behalf of) an external collaborator."""


class PriceDeviation(ExternalDependencyError):
    """Spot price is too far from the time-weighted average."""

    def __init__(self, spot_tick: int, twap_tick: int, max_deviation: int) -> None:
        self.spot_tick = spot_tick
        self.twap_tick = twap_tick
        self.max_deviation = max_deviation
        super().__init__(
            f"price deviation: |{spot_tick} - {twap_tick}| >= {max_deviation}"
        )


class OracleUnavailable(ExternalDependencyError):
    """The venue cannot report cumulative ticks for the requested window."""


class SwapFailed(ExternalDependencyError):
    pass


class InsufficientOutput(SwapFailed):
    def __init__(self, amount_out: int, min_out: int) -> None:
        self.amount_out = amount_out
        self.min_out = min_out
        super().__init__(f"swap output {amount_out} below minimum {min_out}")


class DeadlineExpired(ExternalDependencyError):
    def __init__(self, deadline: int, now: int) -> None:
        self.deadline = deadline
        self.now = now
        super().__init__(f"deadline {deadline} expired at {now}")


class TransferFailed(ExternalDependencyError):
    pass


class CustodyError(ExternalDependencyError):
    pass


# -- Internal invariants ------------------------------------------------------

class InvariantViolation(CompounderError):
    """Raised when engine state is inconsistent. Indicates a bug."""


class RegistryDesync(InvariantViolation):
    def __init__(self, message: str, violations: list[str] | None = None) -> None:
        self.violations = list(violations or [])
        super().__init__(message)


class ReentrantCall(CompounderError):
    """Raised when a state-mutating entry point is entered while another runs."""
