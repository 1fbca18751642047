"""
Proof-of-work nonce search.

A round goes initializing -> searching -> found | exhausted. The work memory
is built once per challenge (MiningRound.prepare) and shared read-only by
every attempt and every worker of that round.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum

import structlog

from scavenger.config import Settings, settings
from scavenger.schemas.challenge import Challenge
from scavenger.services.difficulty import decode_difficulty, meets_target
from scavenger.services.hash_oracle import HashOracle, OracleError, WorkMemory, load_oracle
from scavenger.services.preimage import NONCE_MASK, format_nonce, preimage_suffix

logger = structlog.get_logger()


class SearchState(str, Enum):
    INITIALIZING = "initializing"
    SEARCHING = "searching"
    FOUND = "found"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    worker: int
    attempts: int
    elapsed_seconds: float

    @property
    def rate(self) -> float:
        """Attempts per second."""
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.attempts / self.elapsed_seconds


ProgressCallback = Callable[[ProgressSnapshot], None]


@dataclass(frozen=True, slots=True)
class SearchResult:
    state: SearchState
    nonce: str | None
    attempts: int
    elapsed_seconds: float
    digest: bytes | None = None
    attempt_index: int | None = None

    @property
    def found(self) -> bool:
        return self.state is SearchState.FOUND

    @property
    def rate(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.attempts / self.elapsed_seconds


class SearchCancellation:
    """
    Cooperative cancellation shared by the workers of one round.

    A worker that finds a solution records its attempt index. Workers stop
    once their next index is past the lowest recorded one, so the round
    returns the same nonce a single sequential pass would. stop() (or the
    wrapped caller event) ends every worker at its next check.
    """

    def __init__(self, event: threading.Event | None = None) -> None:
        self._event = event if event is not None else threading.Event()
        self._lock = threading.Lock()
        self._found_at: int | None = None

    @property
    def found_at(self) -> int | None:
        return self._found_at

    def stop(self) -> None:
        self._event.set()

    def report_found(self, index: int) -> None:
        with self._lock:
            if self._found_at is None or index < self._found_at:
                self._found_at = index

    def should_stop(self, index: int) -> bool:
        if self._event.is_set():
            return True
        found_at = self._found_at
        return found_at is not None and index > found_at


def session_seed() -> int:
    """
    Starting nonce for a session: wall-clock Unix seconds.

    Only a best-effort way to keep concurrent miners apart; two clients
    started in the same second search the same range.
    """
    return int(time.time()) & NONCE_MASK


@dataclass(frozen=True, slots=True)
class MiningRound:
    """A challenge bound to the work memory built from its salt."""

    challenge: Challenge
    oracle: HashOracle
    work_memory: WorkMemory
    loop_count: int
    instruction_count: int

    @classmethod
    def prepare(
        cls,
        challenge: Challenge,
        oracle: HashOracle,
        *,
        memory_size: int,
        loop_count: int,
        instruction_count: int,
    ) -> MiningRound:
        """Build the round's work memory. Expensive; call once per challenge."""
        logger.info(
            "round_initializing",
            state=SearchState.INITIALIZING.value,
            seed_prefix=challenge.no_pre_mine[:16],
            memory_size=memory_size,
            loop_count=loop_count,
            instruction_count=instruction_count,
        )
        start = time.perf_counter()
        try:
            work_memory = oracle.initialize(challenge.no_pre_mine.encode("utf-8"), memory_size)
        except OracleError:
            raise
        except Exception as e:
            raise OracleError(f"Work memory construction failed: {e}") from e

        logger.info(
            "round_ready",
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return cls(
            challenge=challenge,
            oracle=oracle,
            work_memory=work_memory,
            loop_count=loop_count,
            instruction_count=instruction_count,
        )

    def hash(self, preimage: bytes) -> bytes:
        return self.oracle.digest(
            preimage, self.work_memory, self.loop_count, self.instruction_count
        )


def search(
    mining_round: MiningRound,
    address: str,
    max_iterations: int,
    *,
    seed: int | None = None,
    offset: int = 0,
    stride: int = 1,
    cancellation: SearchCancellation | None = None,
    on_progress: ProgressCallback | None = None,
    progress_interval: float | None = None,
    worker: int = 0,
) -> SearchResult:
    """
    Search attempts offset, offset + stride, ... below max_iterations.

    Attempt i hashes nonce (seed + i) mod 2**64. Returns on the first
    digest that meets the challenge difficulty; running out of budget is an
    EXHAUSTED result, not an error.
    """
    if max_iterations < 0:
        raise ValueError(f"max_iterations must not be negative, got {max_iterations}")
    if offset < 0 or stride < 1:
        raise ValueError(f"Invalid nonce stride (offset={offset}, stride={stride})")

    challenge = mining_round.challenge
    if mining_round.work_memory.seed != challenge.no_pre_mine.encode("utf-8"):
        raise ValueError("Work memory was built for a different challenge")

    seed = session_seed() if seed is None else seed & NONCE_MASK
    if progress_interval is None:
        progress_interval = settings.progress_interval_seconds
    target = decode_difficulty(challenge.difficulty)
    suffix = preimage_suffix(address, challenge)

    logger.debug(
        "search_started",
        state=SearchState.SEARCHING.value,
        worker=worker,
        start_nonce=format_nonce(seed),
        offset=offset,
        stride=stride,
        max_iterations=max_iterations,
    )

    start = time.monotonic()
    last_report = start
    attempts = 0

    for index in range(offset, max_iterations, stride):
        if cancellation is not None and cancellation.should_stop(index):
            logger.debug("search_cancelled", worker=worker, attempts=attempts)
            return SearchResult(
                state=SearchState.EXHAUSTED,
                nonce=None,
                attempts=attempts,
                elapsed_seconds=time.monotonic() - start,
            )

        nonce_hex = format_nonce((seed + index) & NONCE_MASK)
        digest = mining_round.hash(nonce_hex.encode("ascii") + suffix)
        attempts += 1

        if meets_target(digest, target):
            elapsed = time.monotonic() - start
            if cancellation is not None:
                cancellation.report_found(index)
            logger.info(
                "nonce_found",
                worker=worker,
                nonce=nonce_hex,
                digest_prefix=digest[:8].hex(),
                attempts=attempts,
                elapsed_seconds=round(elapsed, 2),
            )
            return SearchResult(
                state=SearchState.FOUND,
                nonce=nonce_hex,
                attempts=attempts,
                elapsed_seconds=elapsed,
                digest=digest,
                attempt_index=index,
            )

        now = time.monotonic()
        if now - last_report >= progress_interval:
            snapshot = ProgressSnapshot(
                worker=worker, attempts=attempts, elapsed_seconds=now - start
            )
            logger.debug(
                "search_progress",
                worker=worker,
                attempts=attempts,
                rate=round(snapshot.rate, 1),
            )
            if on_progress is not None:
                on_progress(snapshot)
            last_report = now

    elapsed = time.monotonic() - start
    logger.debug("search_exhausted", worker=worker, attempts=attempts)
    return SearchResult(
        state=SearchState.EXHAUSTED,
        nonce=None,
        attempts=attempts,
        elapsed_seconds=elapsed,
    )


def merge_results(results: list[SearchResult]) -> SearchResult:
    """Combine worker results; the lowest winning attempt index wins."""
    attempts = sum(r.attempts for r in results)
    elapsed = max((r.elapsed_seconds for r in results), default=0.0)

    winners = [r for r in results if r.found]
    if not winners:
        return SearchResult(
            state=SearchState.EXHAUSTED,
            nonce=None,
            attempts=attempts,
            elapsed_seconds=elapsed,
        )

    best = min(winners, key=lambda r: r.attempt_index)
    return SearchResult(
        state=SearchState.FOUND,
        nonce=best.nonce,
        attempts=attempts,
        elapsed_seconds=elapsed,
        digest=best.digest,
        attempt_index=best.attempt_index,
    )


def run_round(
    mining_round: MiningRound,
    address: str,
    max_iterations: int,
    *,
    seed: int,
    workers: int = 1,
    cancel_event: threading.Event | None = None,
    on_progress: ProgressCallback | None = None,
    progress_interval: float | None = None,
) -> SearchResult:
    """Run one prepared round on one thread or on `workers` strided threads."""
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    cancellation = SearchCancellation(cancel_event)

    if workers == 1:
        return search(
            mining_round,
            address,
            max_iterations,
            seed=seed,
            cancellation=cancellation,
            on_progress=on_progress,
            progress_interval=progress_interval,
        )

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="miner") as pool:
        futures = [
            pool.submit(
                search,
                mining_round,
                address,
                max_iterations,
                seed=seed,
                offset=k,
                stride=workers,
                cancellation=cancellation,
                on_progress=on_progress,
                progress_interval=progress_interval,
                worker=k,
            )
            for k in range(workers)
        ]
        try:
            # The first failing worker ends the round; siblings stop at their next check
            done, _ = wait(futures, return_when=FIRST_EXCEPTION)
            for future in done:
                if future.exception() is not None:
                    future.result()
            results = [future.result() for future in futures]
        except BaseException:
            cancellation.stop()
            raise

    return merge_results(results)


def mine_challenge(
    address: str,
    challenge: Challenge,
    max_iterations: int,
    *,
    oracle: HashOracle | None = None,
    workers: int | None = None,
    seed: int | None = None,
    cancel_event: threading.Event | None = None,
    on_progress: ProgressCallback | None = None,
    config: Settings | None = None,
) -> SearchResult:
    """
    Mine one challenge end to end: build the round, search, drop the round.

    Oracle failures raise OracleError and end the round without retry.
    """
    config = config or settings
    if max_iterations < 0:
        raise ValueError(f"max_iterations must not be negative, got {max_iterations}")
    workers = config.workers if workers is None else workers
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    with structlog.contextvars.bound_contextvars(challenge_id=challenge.challenge_id):
        if max_iterations == 0:
            logger.info("search_exhausted", attempts=0, max_iterations=0)
            return SearchResult(
                state=SearchState.EXHAUSTED, nonce=None, attempts=0, elapsed_seconds=0.0
            )

        oracle = oracle if oracle is not None else load_oracle(config.hash_oracle)
        seed = session_seed() if seed is None else seed & NONCE_MASK

        mining_round = MiningRound.prepare(
            challenge,
            oracle,
            memory_size=config.memory_size,
            loop_count=config.loop_count,
            instruction_count=config.instruction_count,
        )

        logger.info(
            "search_started",
            state=SearchState.SEARCHING.value,
            difficulty=challenge.difficulty,
            start_nonce=format_nonce(seed),
            max_iterations=max_iterations,
            workers=workers,
        )
        result = run_round(
            mining_round,
            address,
            max_iterations,
            seed=seed,
            workers=workers,
            cancel_event=cancel_event,
            on_progress=on_progress,
            progress_interval=config.progress_interval_seconds,
        )

        if result.found:
            logger.info(
                "round_solved",
                state=result.state.value,
                nonce=result.nonce,
                attempts=result.attempts,
                rate=round(result.rate, 1),
            )
        else:
            logger.info(
                "search_exhausted",
                state=result.state.value,
                attempts=result.attempts,
                max_iterations=max_iterations,
            )
        return result
