"""
Pytest Configuration and Global Fixtures.

This file is automatically loaded by pytest and provides:
- Shared fixtures available to all tests
- Pytest markers configuration
"""

import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Ensure src/ is in Python path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


from packsource.installer import PackageInstaller
from packsource.layout import WorkspaceLayout
from packsource.object_store import ObjectStore
from packsource.scheduler import RefreshScheduler
from tests.helpers.fixtures import FakeClock, FakeSource


# =============================================================================
# Pytest Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests requiring multiple components"
    )


# =============================================================================
# Function-Scoped Fixtures
# =============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test isolation."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def layout(temp_dir: Path) -> WorkspaceLayout:
    """Initialized workspace layout in a temp directory."""
    layout = WorkspaceLayout(temp_dir / "project")
    layout.init_workspace()
    return layout


@pytest.fixture
def store(layout: WorkspaceLayout) -> ObjectStore:
    return ObjectStore(layout)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(store: ObjectStore, clock: FakeClock) -> RefreshScheduler:
    return RefreshScheduler(store.refresh, window=1.0, clock=clock)


@pytest.fixture
def installer(layout, store, scheduler) -> PackageInstaller:
    return PackageInstaller(layout, store, scheduler=scheduler)


@pytest.fixture
def make_source(layout, store):
    """Factory for FakeSources bound to the test workspace, loaded by default."""
    def _make(*catalog, name="fake", source_group="test", load=True, **kwargs) -> FakeSource:
        source = FakeSource(
            name=name,
            source_group=source_group,
            catalog=catalog,
            packages_root=layout.packages_path,
            store=store,
            **kwargs,
        )
        if load:
            source.load_packages()
        return source
    return _make


# =============================================================================
# Collection Hooks
# =============================================================================

def pytest_collection_modifyitems(config, items):
    """Mark tests under tests/integration/ as integration tests."""
    for item in items:
        rel_path = Path(item.fspath).relative_to(Path(__file__).parent)
        if "integration" in rel_path.parts:
            item.add_marker(pytest.mark.integration)
