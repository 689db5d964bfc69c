import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path so `import slide_sync` works,
# and tests/ so the shared fakes import as `fakes`
tests_dir = Path(__file__).resolve().parent
project_root = tests_dir.parent
for path in (project_root, tests_dir):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from fakes import FakeHost, FakeRenderer  # noqa: E402
from slide_sync.config import SyncConfig  # noqa: E402
from slide_sync.engine import EngineContext  # noqa: E402


@pytest.fixture
def fake_host():
    return FakeHost()


@pytest.fixture
def make_context():
    """Build an isolated EngineContext around a FakeHost and FakeRenderer."""
    def _make(host=None, config=None, **renderer_options):
        host = host or FakeHost()
        return EngineContext(host, lambda context: FakeRenderer(context, **renderer_options),
                             config=config or SyncConfig())
    return _make
