"""Utility exports."""

from inferret.utils.concurrency import BoundedSemaphore

__all__ = ["BoundedSemaphore"]
