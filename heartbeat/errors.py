from __future__ import annotations


class HeartbeatError(Exception):
    """Base class for every error raised by the heartbeat package."""


class ValidationError(HeartbeatError):
    """Malformed input from a caller. Never retried."""


class SlugError(ValidationError):
    pass


class SlugEmpty(SlugError):
    def __init__(self) -> None:
        super().__init__("slug must not be empty")


class SlugTooLong(SlugError):
    def __init__(self, length: int, max_length: int) -> None:
        super().__init__(f"slug length {length} exceeds maximum of {max_length}")
        self.length = length


class SlugInvalidCharacters(SlugError):
    def __init__(self) -> None:
        super().__init__("slug must contain only lowercase letters, digits, and hyphens")


class SlugInvalidHyphenPosition(SlugError):
    def __init__(self) -> None:
        super().__init__("slug must not start or end with a hyphen")


class IntervalError(ValidationError):
    pass


class StorageError(HeartbeatError):
    """The monitor store could not complete an operation."""


class NotFoundError(HeartbeatError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"monitor not found: {slug}")
        self.slug = slug


class DeliveryError(HeartbeatError):
    """The notification sink was unreachable or rejected the message."""
