import pytest

from scavenger.config import Settings
from scavenger.schemas.challenge import Challenge
from tests.test_utils import StubOracle


@pytest.fixture
def address():
    return "addrX"


@pytest.fixture
def challenge():
    """The challenge from the worked example: target prefix 00ffffff."""
    return Challenge(
        challenge_id="c1",
        day=3,
        challenge_number=42,
        difficulty="00ffffffff",
        no_pre_mine="seedA",
        latest_submission="ls1",
        no_pre_mine_hour="h1",
    )


@pytest.fixture
def test_settings():
    """Settings with a tiny work memory and per-attempt progress reports."""
    return Settings(memory_size=64 * 1024, progress_interval_seconds=0.0, workers=1)


@pytest.fixture
def never_matching_oracle():
    return StubOracle(lambda preimage: b"\xff" * 64)
