from __future__ import annotations


class LotteryError(Exception):
    """A rejected contract call. The call is reverted as a whole."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class AuthorizationError(LotteryError):
    pass


class InvalidAmountError(LotteryError):
    pass


class InactiveRoundError(LotteryError):
    pass


class InvalidQuantityError(LotteryError):
    pass


class InvalidConfigurationError(LotteryError):
    pass


class PayoutFailureError(LotteryError):
    pass


class LedgerError(Exception):
    pass


class InsufficientFundsError(LedgerError):
    pass


class InvalidAddressError(LedgerError):
    pass
