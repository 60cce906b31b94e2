"""Exception types raised by the feed pipeline."""

from __future__ import annotations

from typing import Optional


class TagFeedError(RuntimeError):
    """Base class for pipeline failures tied to a tag."""

    def __init__(self, message: str, tag: Optional[str] = None) -> None:
        super().__init__(message)
        self.tag = tag


class FetchError(TagFeedError):
    """The feed document could not be retrieved or parsed."""


class SchemaError(TagFeedError):
    """A feed entry is missing one of its required fields."""


class StoreError(TagFeedError):
    """A query or transaction against the seen-entry store failed."""


class DeliveryError(TagFeedError):
    """The webhook rejected a payload. Logged by the notifier, never propagated."""

    def __init__(
        self,
        message: str,
        tag: Optional[str] = None,
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(message, tag)
        self.status_code = status_code
        self.body = body
