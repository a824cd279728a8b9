import logging
from typing import Any, Callable, Dict, List, Optional

import mongomock
import pytest

from link_fixer.config_manager import FixerConfig
from link_fixer.store import InstanceStore

# ============================================================================
# Environment
# ============================================================================

_ENV_VARS = [
    "MONGODB_BIND_ADDR",
    "MONGODB_DATABASE",
    "MONGODB_COLLECTION",
    "MONGODB_USERNAME",
    "MONGODB_PASSWORD",
    "MONGODB_IS_SSL",
    "MONGODB_CONNECT_TIMEOUT",
    "MONGODB_QUERY_TIMEOUT",
    "LINK_FIXER_FORMATS",
    "LINK_FIXER_LIMIT",
    "LINK_FIXER_DRY_RUN",
    "LINK_FIXER_SKIP_UNCHANGED",
    "LINK_FIXER_REPEAT",
    "LINK_FIXER_MAX_PASSES",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FILE",
]


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


# ============================================================================
# Instance Store Fixtures
# ============================================================================


@pytest.fixture
def collection():
    """Provide an in-memory instances collection."""
    return mongomock.MongoClient()["datasets"]["instances"]


@pytest.fixture
def store(collection) -> InstanceStore:
    """Provide an InstanceStore bound to the in-memory collection."""
    return InstanceStore(collection=collection)


@pytest.fixture
def make_instance(collection) -> Callable[..., Any]:
    """Insert an instance document with the given downloads and return its _id."""

    def _make(downloads: Dict[str, Dict[str, str]], **extra: Any) -> Any:
        document: Dict[str, Any] = {"downloads": downloads, "state": "published"}
        document.update(extra)
        return collection.insert_one(document).inserted_id

    return _make


@pytest.fixture
def audit() -> List[str]:
    """Collect lines the fixer prints."""
    return []


@pytest.fixture
def fixer_config() -> Callable[..., FixerConfig]:
    def _config(
        formats: Optional[List[str]] = None,
        limit: int = 10,
        dry_run: bool = False,
        **kwargs: Any,
    ) -> FixerConfig:
        return FixerConfig(
            formats=formats or ["xlsx", "xls", "csv", "csvw"],
            limit=limit,
            dry_run=dry_run,
            **kwargs,
        )

    return _config


@pytest.fixture(autouse=True)
def restore_root_logger():
    """setup_logging replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
