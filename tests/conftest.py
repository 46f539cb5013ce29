import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
if SRC.exists():
    sys.path.insert(0, str(SRC))

# Register shared Hypothesis profiles for deterministic CI runs and fast local loops.
from tests.util import hypothesis_profiles  # noqa: E402,F401  pylint: disable=unused-import
from tests.util.payloads import FakeBackend, metrics_payload  # noqa: E402


@pytest.fixture
def fake_backend() -> FakeBackend:
    backend = FakeBackend()
    backend.metrics.append(metrics_payload())
    backend.actions.append({"actions": [], "count": 0})
    return backend
