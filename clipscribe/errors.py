from __future__ import annotations


class ClipscribeError(Exception):
    pass


class ConfigError(ClipscribeError):
    """Configuration file or environment could not be read."""


class InvalidReferenceError(ClipscribeError):
    """Input is neither a video id nor a URL on a supported platform."""


class PaymentRequiredError(ClipscribeError):
    """Paid-tier feature requested without a verified payment session."""


class StrategyError(ClipscribeError):
    """Ordinary failure inside a strategy: bad status, odd shape, empty list.

    ``no_captions`` marks failures where the upstream answered cleanly but the
    video has no caption track to offer.
    """

    def __init__(self, message: str, *, no_captions: bool = False) -> None:
        super().__init__(message)
        self.no_captions = no_captions


class TransientUpstreamError(StrategyError):
    """Network hiccup or 5xx from an upstream that may succeed on retry."""


class RateLimitedError(ClipscribeError):
    """Caller exceeded its request quota for the current window."""


class UpstreamError(ClipscribeError):
    """A page we depend on could not be fetched or understood."""
