import asyncio
import os
from typing import Any, Generator

import pytest

from companion.configuration import Config, ConfigFactory, ConfigStore, MockConfigProvider, reset_config_provider, setup_config_store
from companion.grades.models import ExtractedRecord, RosterEntry
from companion.grades.store import InMemoryClassroomStore

# pylint: disable=unused-argument, redefined-outer-name


def pytest_sessionstart(session) -> None:
    """Hook to run before any tests are executed."""
    os.environ["CONFIG_FILE"] = "./tests/config.yml"
    os.environ["ENV_FILE"] = "./tests/.env"
    asyncio.run(setup_config_store("./tests/config.yml"))


@pytest.fixture(autouse=True)
def setup_reset_config() -> Generator[None, Any, None]:
    """Reset Config Store and provider before each test"""
    ConfigStore.reset_instance()
    reset_config_provider()
    yield
    ConfigStore.reset_instance()
    reset_config_provider()


@pytest.fixture
def test_config() -> Config:
    """Provide test configuration"""
    factory: ConfigFactory = ConfigFactory()
    config: Config = factory.load(source="./tests/config.yml", context="default", env_filename="./tests/.env")
    return config


@pytest.fixture
def test_provider(test_config: Config) -> MockConfigProvider:
    """Provide MockConfigProvider with test configuration"""
    return MockConfigProvider(test_config)


@pytest.fixture
def roster() -> list[RosterEntry]:
    return [
        RosterEntry(uid="s-1", name="Alice Smith", roll_number="101"),
        RosterEntry(uid="s-2", name="Bob Jones", roll_number="102"),
        RosterEntry(uid="s-3", name="Chitra Rao"),
    ]


@pytest.fixture
def extracted() -> list[ExtractedRecord]:
    return [
        ExtractedRecord(student_name="alice smith", roll_number=None, marks_obtained=85),
        ExtractedRecord(student_name="Unknown Kid", roll_number="999", marks_obtained=70),
        ExtractedRecord(student_name=None, roll_number="102", marks_obtained=91),
    ]


@pytest.fixture
def classroom_store() -> InMemoryClassroomStore:
    return InMemoryClassroomStore.from_yaml("./tests/classrooms.yml")
