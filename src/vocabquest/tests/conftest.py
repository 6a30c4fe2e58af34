"""Test configuration."""
import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from sqlalchemy.orm import sessionmaker

from vocabquest.models.base import init_db, make_engine
from vocabquest.models.catalog_models import Module
from vocabquest.services.catalog_service import WordCatalog
from vocabquest.services.challenge_orchestrator import ChallengeOrchestrator
from vocabquest.services.id_compatibility_service import WordIdCompatibilityService
from vocabquest.services.id_migration_service import WordIdMigrationService
from vocabquest.services.storage_service import KeyValueStorage, ProgressStore
from vocabquest.tests.factories import basic_words, travel_words


@pytest.fixture
def db_engine():
    """Fresh in-memory database for each test."""
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def storage(session_factory) -> KeyValueStorage:
    return KeyValueStorage(session_factory)


@pytest.fixture
def store(storage) -> ProgressStore:
    return ProgressStore(storage)


@pytest.fixture
def catalog() -> WordCatalog:
    """German catalog with two modules that both contain a word "185"."""
    return WordCatalog({
        "de": [
            Module(id="grundwortschatz", name="Grundwortschatz", words=basic_words()),
            Module(id="reisen", name="Reisen", words=travel_words()),
        ],
    })


@pytest.fixture
def migration(catalog, store) -> WordIdMigrationService:
    return WordIdMigrationService(catalog, store)


@pytest.fixture
def compat(catalog) -> WordIdCompatibilityService:
    return WordIdCompatibilityService(catalog)


@pytest.fixture
def orchestrator(catalog) -> ChallengeOrchestrator:
    return ChallengeOrchestrator(catalog)
