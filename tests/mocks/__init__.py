# Mock classes for testing
"""Misbehaving collaborators for failure-path tests."""

from .router_mock import BrokenFeed, FailingRouter, ReentrantRouter, ShortchangingRouter
from .token_mock import FailingRepository, FrozenToken

__all__ = [
    "FailingRouter",
    "ShortchangingRouter",
    "ReentrantRouter",
    "BrokenFeed",
    "FrozenToken",
    "FailingRepository",
]
