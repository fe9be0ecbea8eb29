"""NagarSeva service layer: classification, storage, secrets, intake and mutation."""

from __future__ import annotations

from src.services.cache import CacheManager, InMemoryCacheBackend, RedisCacheBackend
from src.services.classifier import (
    Classification,
    Classifier,
    GuardedClassifier,
    KeywordClassifier,
    LLMClassifier,
)
from src.services.errors import (
    AuthFailure,
    ClassificationFailure,
    ClassificationTimeout,
    ComplaintClosed,
    ComplaintNotFound,
    InvalidInput,
    NagarSevaError,
    StoreUnavailable,
)
from src.services.filing import ComplaintFiler
from src.services.keyed_lock import KeyedLock
from src.services.mutation_gate import MutationGate
from src.services.record_store import InMemoryRecordStore, RecordStore
from src.services.secret_manager import SecretManager

__all__ = [
    "AuthFailure",
    "CacheManager",
    "Classification",
    "ClassificationFailure",
    "ClassificationTimeout",
    "Classifier",
    "ComplaintClosed",
    "ComplaintFiler",
    "ComplaintNotFound",
    "GuardedClassifier",
    "InMemoryCacheBackend",
    "InMemoryRecordStore",
    "InvalidInput",
    "KeyedLock",
    "KeywordClassifier",
    "LLMClassifier",
    "MutationGate",
    "NagarSevaError",
    "RecordStore",
    "RedisCacheBackend",
    "SecretManager",
    "StoreUnavailable",
]
