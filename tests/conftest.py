"""Shared fixtures: in-memory services wired the way the app wires them."""

from __future__ import annotations

import os

# Must run before config.settings is imported anywhere.
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("NAGARSEVA_BCRYPT_ROUNDS", "4")
os.environ.setdefault("OFFICIAL_API_KEY", "test-official-key")

import pytest

from src.services.cache import CacheManager
from src.services.classifier import GuardedClassifier, KeywordClassifier
from src.services.filing import ComplaintFiler
from src.services.intake import IntakeEngine, IntakeMachine, SessionRegistry
from src.services.mutation_gate import MutationGate
from src.services.record_store import InMemoryRecordStore
from src.services.secret_manager import SecretManager


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def secrets() -> SecretManager:
    return SecretManager(rounds=4)


@pytest.fixture
def classifier() -> GuardedClassifier:
    return GuardedClassifier(KeywordClassifier(), timeout_seconds=1.0)


@pytest.fixture
def filer(store: InMemoryRecordStore, secrets: SecretManager, classifier: GuardedClassifier) -> ComplaintFiler:
    return ComplaintFiler(store, secrets, classifier, min_secret_length=6, max_secret_length=64)


@pytest.fixture
def gate(store: InMemoryRecordStore, secrets: SecretManager) -> MutationGate:
    return MutationGate(store, secrets)


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry(CacheManager(redis_url=None, namespace="test:"), ttl_seconds=3_600)


@pytest.fixture
def machine() -> IntakeMachine:
    return IntakeMachine(min_description_chars=20, min_secret_length=6, max_secret_length=64)


@pytest.fixture
def engine(
    registry: SessionRegistry,
    machine: IntakeMachine,
    classifier: GuardedClassifier,
    store: InMemoryRecordStore,
    filer: ComplaintFiler,
) -> IntakeEngine:
    return IntakeEngine(
        registry=registry,
        machine=machine,
        classifier=classifier,
        store=store,
        filer=filer,
    )
