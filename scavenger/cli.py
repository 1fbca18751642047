"""
Command line miner for the Scavenger Mine.

Usage:
    scavenger terms
    scavenger register --address addr1...
    scavenger challenge
    scavenger mine --address addr1... --max-iterations 1000000 --workers 4
    scavenger benchmark --max-workers 8
"""

from __future__ import annotations

import argparse
import os
import sys
import threading

import httpx
import structlog

from scavenger import __version__
from scavenger.config import settings
from scavenger.logging_config import setup_logging
from scavenger.schemas.challenge import Challenge
from scavenger.services.hash_oracle import OracleError, load_oracle
from scavenger.services.scavenger_client import ApiError, ScavengerClient, reward_for_day
from scavenger.services.search_service import (
    MiningRound,
    ProgressSnapshot,
    mine_challenge,
    run_round,
)

logger = structlog.get_logger()

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_EXHAUSTED = 2

# Digest prefix must be four zero bytes: effectively never met
BENCHMARK_DIFFICULTY = "00000000"


def echo(msg: str = "") -> None:
    print(msg, flush=True)


class ProgressMeter:
    """Single-line throughput display summed over all workers."""

    def __init__(self, stream=None) -> None:
        self._stream = stream or sys.stdout
        self._lock = threading.Lock()
        self._latest: dict[int, ProgressSnapshot] = {}
        self._shown = False

    def update(self, snapshot: ProgressSnapshot) -> None:
        with self._lock:
            self._latest[snapshot.worker] = snapshot
            attempts = sum(s.attempts for s in self._latest.values())
            elapsed = max(s.elapsed_seconds for s in self._latest.values())
            rate = attempts / elapsed if elapsed > 0 else 0.0
            self._stream.write(
                f"\r   Iteration: {attempts:>10} | Rate: {rate:>8.0f} H/s | Time: {elapsed:>6.1f}s"
            )
            self._stream.flush()
            self._shown = True

    def finish(self) -> None:
        with self._lock:
            if self._shown:
                self._stream.write("\n")
                self._stream.flush()


def print_challenge(challenge: Challenge, deadline: str | None = None) -> None:
    echo(f"   ID: {challenge.challenge_id}")
    echo(f"   Day: {challenge.day}")
    echo(f"   Challenge #: {challenge.challenge_number}")
    echo(f"   Difficulty: {challenge.difficulty}")
    if deadline:
        echo(f"   Deadline: {deadline}")


def cmd_terms(args: argparse.Namespace) -> int:
    with ScavengerClient() as client:
        terms = client.get_terms()
    echo(f"T&C version: {terms.version}")
    echo()
    echo(terms.content)
    echo()
    echo("Message to sign:")
    echo(terms.message)
    return EXIT_OK


def cmd_register(args: argparse.Namespace) -> int:
    with ScavengerClient() as client:
        signature = args.signature
        pubkey = args.pubkey
        if not signature or not pubkey:
            terms = client.get_terms()
            echo(f"T&C version: {terms.version}")
            echo("Sign this message with the wallet that owns the address:")
            echo(terms.message)
            echo()
            if not signature:
                signature = input("Enter signature: ").strip()
            if not pubkey:
                pubkey = input("Enter public key: ").strip()

        result = client.register(args.address, signature, pubkey)

    if result.registration_receipt is not None:
        echo(f"Registration successful ({result.registration_receipt.timestamp})")
    else:
        echo("Registration completed")
    return EXIT_OK


def cmd_challenge(args: argparse.Namespace) -> int:
    with ScavengerClient() as client:
        response = client.get_challenge()

    if not response.is_active:
        echo(f"No active challenge (code={response.code})")
        return EXIT_ERROR

    echo("Current challenge:")
    print_challenge(response.challenge, response.mining_period_ends)
    return EXIT_OK


def cmd_mine(args: argparse.Namespace) -> int:
    with ScavengerClient() as client:
        response = client.get_challenge()
        if not response.is_active:
            echo(f"No active challenge (code={response.code})")
            return EXIT_ERROR

        challenge = response.challenge
        echo("Challenge received:")
        print_challenge(challenge, response.mining_period_ends)
        echo()

        meter = ProgressMeter()
        try:
            result = mine_challenge(
                args.address,
                challenge,
                args.max_iterations,
                workers=args.workers,
                seed=args.seed,
                on_progress=meter.update,
            )
        finally:
            meter.finish()

        if not result.found:
            echo(f"No valid nonce found in {args.max_iterations} iterations")
            return EXIT_EXHAUSTED

        echo(f"Found valid nonce: {result.nonce}")
        echo(f"   Hash: {result.digest[:8].hex()}")
        echo(f"   Time: {result.elapsed_seconds:.2f}s ({result.rate:.0f} H/s)")

        if args.no_submit:
            return EXIT_OK

        receipt = client.submit_solution(args.address, challenge.challenge_id, result.nonce)
        if not receipt.accepted:
            echo(f"Solution submitted without receipt: {receipt.model_extra}")
            return EXIT_OK

        echo(f"Solution accepted ({receipt.crypto_receipt.timestamp})")
        try:
            rates = client.get_star_rate()
        except (ApiError, httpx.RequestError) as e:
            logger.warning("star_rate_unavailable", error=str(e))
            return EXIT_OK

    reward = reward_for_day(rates, challenge.day)
    if reward is not None:
        echo(f"Reward: {reward} STAR")
    return EXIT_OK


def cmd_benchmark(args: argparse.Namespace) -> int:
    oracle = load_oracle(settings.hash_oracle)
    challenge = Challenge(
        challenge_id="benchmark",
        day=0,
        challenge_number=0,
        difficulty=BENCHMARK_DIFFICULTY,
        no_pre_mine="benchmark",
        latest_submission="benchmark",
        no_pre_mine_hour="benchmark",
    )
    mining_round = MiningRound.prepare(
        challenge,
        oracle,
        memory_size=args.memory_size,
        loop_count=settings.loop_count,
        instruction_count=settings.instruction_count,
    )

    echo(f"Benchmarking 1..{args.max_workers} worker(s), {args.attempts} attempts each")
    for workers in range(1, args.max_workers + 1):
        budget = args.attempts * workers
        result = run_round(mining_round, "benchmark", budget, seed=0, workers=workers)
        echo(
            f"  {workers:>2} worker(s): {result.elapsed_seconds:.3f}s | "
            f"Rate: {result.rate:.0f} H/s"
        )
    return EXIT_OK


def _int_auto_base(value: str) -> int:
    return int(value, 0)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scavenger", description="Scavenger Mine miner")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", default=None, help="Override SCAVENGER_LOG_LEVEL")
    parser.add_argument(
        "--log-format",
        choices=("console", "json"),
        default=None,
        help="Override SCAVENGER_LOG_FORMAT",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    terms = subparsers.add_parser("terms", help="Show the terms and conditions")
    terms.set_defaults(handler=cmd_terms)

    register = subparsers.add_parser("register", help="Register a wallet address")
    register.add_argument("--address", required=True, help="Cardano address")
    register.add_argument("--signature", help="Signature over the T&C message")
    register.add_argument("--pubkey", help="Hex public key (64 characters)")
    register.set_defaults(handler=cmd_register)

    challenge = subparsers.add_parser("challenge", help="Show the current challenge")
    challenge.set_defaults(handler=cmd_challenge)

    mine = subparsers.add_parser("mine", help="Mine the current challenge")
    mine.add_argument("--address", required=True, help="Cardano address to mine for")
    mine.add_argument(
        "--max-iterations",
        type=int,
        default=settings.default_max_iterations,
        help=f"Hash attempts before giving up (default: {settings.default_max_iterations})",
    )
    mine.add_argument(
        "--workers",
        type=int,
        default=settings.workers,
        help=f"Worker threads sharing the round (default: {settings.workers})",
    )
    mine.add_argument(
        "--seed",
        type=_int_auto_base,
        default=None,
        help="Starting nonce (default: current Unix time)",
    )
    mine.add_argument(
        "--no-submit",
        action="store_true",
        help="Search only, do not submit the nonce",
    )
    mine.set_defaults(handler=cmd_mine)

    benchmark = subparsers.add_parser("benchmark", help="Measure hash rate per worker count")
    benchmark.add_argument(
        "--max-workers",
        type=int,
        default=os.cpu_count() or 1,
        help="Highest worker count to measure (default: CPU count)",
    )
    benchmark.add_argument(
        "--attempts",
        type=int,
        default=10_000,
        help="Attempts per worker (default: 10000)",
    )
    benchmark.add_argument(
        "--memory-size",
        type=int,
        default=settings.memory_size,
        help=f"Work memory size in bytes (default: {settings.memory_size})",
    )
    benchmark.set_defaults(handler=cmd_benchmark)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level, args.log_format)

    try:
        return args.handler(args)
    except (ApiError, OracleError, httpx.RequestError, ValueError) as e:
        logger.error("command_failed", command=args.command, error=str(e))
        return EXIT_ERROR
    except KeyboardInterrupt:
        echo()
        logger.warning("interrupted", command=args.command)
        return EXIT_ERROR
