"""Tests for the command line entry point."""

import io
from unittest.mock import MagicMock, patch

import pytest

from scavenger.cli import EXIT_ERROR, EXIT_EXHAUSTED, EXIT_OK, ProgressMeter, main
from scavenger.schemas.challenge import ChallengeResponse
from scavenger.schemas.receipts import (
    CryptoReceipt,
    RegistrationResponse,
    SolutionResponse,
    TermsResponse,
)
from scavenger.services.hash_oracle import OracleError
from scavenger.services.scavenger_client import ApiError
from scavenger.services.search_service import ProgressSnapshot, SearchResult, SearchState

FOUND = SearchResult(
    state=SearchState.FOUND,
    nonce="00000000000000ff",
    attempts=256,
    elapsed_seconds=2.0,
    digest=b"\x00" * 64,
    attempt_index=255,
)
EXHAUSTED = SearchResult(
    state=SearchState.EXHAUSTED, nonce=None, attempts=100, elapsed_seconds=1.0
)


@pytest.fixture(autouse=True)
def keep_default_logging():
    """Leave structlog unconfigured so loggers never cache a captured stream."""
    with patch("scavenger.cli.setup_logging"):
        yield


@pytest.fixture
def api(challenge):
    """Patched ScavengerClient; the yielded mock is the client inside `with`."""
    with patch("scavenger.cli.ScavengerClient") as client_cls:
        client = MagicMock()
        client_cls.return_value.__enter__.return_value = client
        client.get_challenge.return_value = ChallengeResponse(
            code="active", challenge=challenge, mining_period_ends="2025-11-20T23:59:59Z"
        )
        yield client


class TestMine:
    def test_found_and_accepted(self, api, capsys):
        api.submit_solution.return_value = SolutionResponse(
            crypto_receipt=CryptoReceipt(preimage="p", timestamp="t1", signature="s")
        )
        api.get_star_rate.return_value = [5, 6, 7, 8]

        with patch("scavenger.cli.mine_challenge", return_value=FOUND) as mine:
            code = main(
                ["mine", "--address", "addrX", "--max-iterations", "1000", "--seed", "0x10"]
            )

        assert code == EXIT_OK
        assert mine.call_args.args[0] == "addrX"
        assert mine.call_args.args[2] == 1000
        assert mine.call_args.kwargs["seed"] == 16
        api.submit_solution.assert_called_once_with("addrX", "c1", "00000000000000ff")
        out = capsys.readouterr().out
        assert "Found valid nonce: 00000000000000ff" in out
        assert "Reward: 7 STAR" in out

    def test_exhausted_does_not_submit(self, api, capsys):
        with patch("scavenger.cli.mine_challenge", return_value=EXHAUSTED):
            code = main(["mine", "--address", "addrX", "--max-iterations", "100"])

        assert code == EXIT_EXHAUSTED
        api.submit_solution.assert_not_called()
        assert "No valid nonce found in 100 iterations" in capsys.readouterr().out

    def test_no_submit_flag(self, api):
        with patch("scavenger.cli.mine_challenge", return_value=FOUND):
            code = main(["mine", "--address", "addrX", "--no-submit"])

        assert code == EXIT_OK
        api.submit_solution.assert_not_called()

    def test_inactive_challenge(self, api):
        api.get_challenge.return_value = ChallengeResponse(code="after")

        with patch("scavenger.cli.mine_challenge") as mine:
            code = main(["mine", "--address", "addrX"])

        assert code == EXIT_ERROR
        mine.assert_not_called()

    def test_star_rate_failure_still_succeeds(self, api):
        api.submit_solution.return_value = SolutionResponse(
            crypto_receipt=CryptoReceipt(preimage="p", timestamp="t1", signature="s")
        )
        api.get_star_rate.side_effect = ApiError(500, "boom")

        with patch("scavenger.cli.mine_challenge", return_value=FOUND):
            code = main(["mine", "--address", "addrX"])

        assert code == EXIT_OK

    @pytest.mark.parametrize(
        "error",
        [ApiError(503, "unavailable"), OracleError("Work memory too large")],
    )
    def test_errors_exit_nonzero(self, api, error):
        with patch("scavenger.cli.mine_challenge", side_effect=error):
            code = main(["mine", "--address", "addrX"])

        assert code == EXIT_ERROR


class TestOtherCommands:
    def test_challenge(self, api, capsys):
        assert main(["challenge"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "ID: c1" in out
        assert "Difficulty: 00ffffffff" in out

    def test_register_with_arguments(self, api):
        api.register.return_value = RegistrationResponse()

        code = main(["register", "--address", "addrX", "--signature", "sig", "--pubkey", "a" * 64])

        assert code == EXIT_OK
        api.register.assert_called_once_with("addrX", "sig", "a" * 64)
        api.get_terms.assert_not_called()

    def test_register_prompts_for_signature(self, api):
        api.get_terms.return_value = TermsResponse(version="1-0", content="c", message="I agree")
        api.register.return_value = RegistrationResponse()

        with patch("builtins.input", side_effect=["sig", "b" * 64]):
            code = main(["register", "--address", "addrX"])

        assert code == EXIT_OK
        api.register.assert_called_once_with("addrX", "sig", "b" * 64)

    def test_terms(self, api, capsys):
        api.get_terms.return_value = TermsResponse(version="1-0", content="c", message="I agree")

        assert main(["terms"]) == EXIT_OK
        assert "I agree" in capsys.readouterr().out


def test_progress_meter_sums_workers():
    stream = io.StringIO()
    meter = ProgressMeter(stream)

    meter.update(ProgressSnapshot(worker=0, attempts=100, elapsed_seconds=1.0))
    meter.update(ProgressSnapshot(worker=1, attempts=300, elapsed_seconds=2.0))
    meter.finish()

    last_line = stream.getvalue().rstrip("\n").split("\r")[-1]
    assert "Iteration:        400" in last_line
    assert "Rate:      200 H/s" in last_line
    assert stream.getvalue().endswith("\n")


def test_benchmark_runs_each_worker_count(capsys):
    code = main(
        ["benchmark", "--max-workers", "2", "--attempts", "5", "--memory-size", str(64 * 1024)]
    )

    assert code == EXIT_OK
    out = capsys.readouterr().out
    assert " 1 worker(s)" in out
    assert " 2 worker(s)" in out
