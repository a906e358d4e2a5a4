import pytest

from solvesync.config import Settings
from solvesync.schemas.events import ProblemDetails
from solvesync.services.contracts import ServiceResult
from solvesync.services.notifier import LogNotifier
from solvesync.services.runtime import build_runtime
from solvesync.services.store import KeyedWriteQueue, MemoryStore

PROBLEM_URL = "https://takeuforward.org/plus/dsa/problems/3-sum"
SOLUTION = "def three_sum(nums):\n    nums.sort()\n    return []\n"


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class FakeAnalysis:
    def __init__(self, result: ServiceResult | None = None, configured: bool = True):
        self.result = result or ServiceResult.ok(tags=["Edge Cases"], summary="Missed empty input.")
        self._configured = configured
        self.calls: list = []

    @property
    def configured(self) -> bool:
        return self._configured

    async def analyze(self, attempts, context):
        self.calls.append((list(attempts), context))
        return self.result


class FakeBackend:
    def __init__(self, result: ServiceResult | None = None, raises: Exception | None = None):
        self.result = result or ServiceResult.ok(message="Solution synced!")
        self.raises = raises
        self.calls: list[str] = []

    async def push(self, problem_url):
        self.calls.append(problem_url)
        if self.raises:
            raise self.raises
        return self.result


class FakeCodeHost:
    def __init__(self, result: ServiceResult | None = None):
        self.result = result or ServiceResult.ok(path="x/solution.py")
        self.calls: list = []

    async def push(self, context, platform):
        self.calls.append((context, platform))
        return self.result


def make_settings(**overrides) -> Settings:
    values = {
        "settle_seconds": 0,
        "gemini_api_key": "test-key",
        "storage_path": "",
        "handshake_timeout_seconds": 0.2,
        "github_token": "",
        "backend_base_url": "https://backend.test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def write_queue(store):
    return KeyedWriteQueue(store)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def runtime_factory(store, clock):
    """Build a runtime with fake collaborators; override any of them by keyword."""

    def _build(settings=None, **collaborators):
        collaborators.setdefault("analysis", FakeAnalysis())
        collaborators.setdefault("backend", FakeBackend())
        collaborators.setdefault("code_host", FakeCodeHost())
        collaborators.setdefault("notifier", LogNotifier())
        return build_runtime(settings or make_settings(), store, clock=clock, **collaborators)

    return _build


@pytest.fixture
def problem_details():
    return ProblemDetails(
        url=f"{PROBLEM_URL}?category=arrays",
        title="3 Sum",
        description="Find all unique triplets that sum to zero.",
        difficulty="Medium",
    )
