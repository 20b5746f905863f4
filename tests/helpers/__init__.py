"""
Test helpers for the repository test suite.
"""

from .fake_store import FakeDocumentStore

__all__ = [
    "FakeDocumentStore",
]
