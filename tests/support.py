"""tests/support.py -- Constants and a controllable clock shared by the test modules."""

from __future__ import annotations

SECRET = "test-secret-key-for-unit-testing-minimum-32-bytes"
ACCESS_MS = 3_600_000
REFRESH_MS = 604_800_000
START_MS = 1_700_000_000_000

# TestClient reports this as request.client.host.
CLIENT_ADDRESS = "testclient"


class FakeClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms
