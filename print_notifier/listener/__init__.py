"""Change-feed listener routing pushed completions through the reconciler."""

from .service import ChangeFeedListener

__all__ = [
    "ChangeFeedListener",
]
