"""
Hash oracle contract and the local Argon2-backed oracle.

The search loop only depends on the HashOracle protocol:

- initialize(seed, memory_size) builds the round's work memory (expensive,
  once per challenge)
- digest(preimage, work_memory, loop_count, instruction_count) hashes one
  attempt (cheap, pure)

Argon2Oracle honours that contract with argon2-cffi and BLAKE2b. It is meant
for development, benchmarking and tests; it is not the function the
Scavenger server verifies with. A production oracle is selected through the
``hash_oracle`` setting and resolved by load_oracle().
"""

from __future__ import annotations

import hashlib
import importlib
from dataclasses import dataclass, field
from typing import Protocol

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw

DIGEST_SIZE = 64

# Argon2 requires a salt of at least 8 bytes; the per-round entropy is the seed
WORK_MEMORY_SALT = b"scavenger/work-memory/v1"
ARGON2_MIN_MEMORY_KIB = 8
ARGON2_MAX_MEMORY_KIB = 2**32 - 1


class OracleError(RuntimeError):
    """The hash oracle could not be loaded, built or invoked. Fatal to the round."""


@dataclass(frozen=True, slots=True)
class WorkMemory:
    """Read-only per-round structure. Never mutated after initialize()."""

    seed: bytes
    size: int
    data: object = field(repr=False)


class HashOracle(Protocol):
    def initialize(self, seed: bytes, memory_size: int) -> WorkMemory: ...

    def digest(
        self,
        preimage: bytes,
        work_memory: WorkMemory,
        loop_count: int,
        instruction_count: int,
    ) -> bytes: ...


class Argon2Oracle:
    """Argon2id-derived work memory, chained keyed BLAKE2b digests."""

    def __init__(self, time_cost: int = 1, parallelism: int = 1) -> None:
        self.time_cost = time_cost
        self.parallelism = parallelism

    def initialize(self, seed: bytes, memory_size: int) -> WorkMemory:
        memory_kib = memory_size // 1024
        minimum = ARGON2_MIN_MEMORY_KIB * self.parallelism
        if memory_kib < minimum:
            raise OracleError(
                f"Work memory too small: {memory_size} bytes (minimum {minimum * 1024})"
            )
        if memory_kib > ARGON2_MAX_MEMORY_KIB:
            raise OracleError(f"Work memory too large: {memory_size} bytes")

        try:
            key = hash_secret_raw(
                secret=seed,
                salt=WORK_MEMORY_SALT,
                time_cost=self.time_cost,
                memory_cost=memory_kib,
                parallelism=self.parallelism,
                hash_len=DIGEST_SIZE,
                type=Type.ID,
            )
        except (HashingError, MemoryError) as e:
            raise OracleError(f"Work memory construction failed: {e}") from e

        return WorkMemory(seed=seed, size=memory_size, data=key)

    def digest(
        self,
        preimage: bytes,
        work_memory: WorkMemory,
        loop_count: int,
        instruction_count: int,
    ) -> bytes:
        if loop_count < 1:
            raise OracleError(f"loop_count must be positive, got {loop_count}")
        if not 0 < instruction_count < 2**128:
            raise OracleError(f"instruction_count out of range: {instruction_count}")

        person = instruction_count.to_bytes(16, "little")
        state = preimage
        for _ in range(loop_count):
            state = hashlib.blake2b(
                state,
                digest_size=DIGEST_SIZE,
                key=work_memory.data,
                person=person,
            ).digest()
        return state


def load_oracle(path: str) -> HashOracle:
    """
    Resolve a "module:attribute" path to a hash oracle instance.

    The attribute may be a class or a zero-argument factory.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise OracleError(f"Invalid hash oracle path {path!r} (expected 'module:attribute')")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise OracleError(f"Cannot import hash oracle module {module_name!r}: {e}") from e

    factory = getattr(module, attr, None)
    if factory is None:
        raise OracleError(f"Module {module_name!r} has no attribute {attr!r}")

    try:
        oracle = factory()
    except Exception as e:
        raise OracleError(f"Cannot construct hash oracle {path!r}: {e}") from e
    if not callable(getattr(oracle, "initialize", None)) or not callable(
        getattr(oracle, "digest", None)
    ):
        raise OracleError(f"{path!r} does not provide initialize() and digest()")
    return oracle
