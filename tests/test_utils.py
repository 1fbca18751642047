"""Shared test utilities."""

import hashlib

from scavenger.services.hash_oracle import WorkMemory


class StubOracle:
    """Hash oracle double that records its calls."""

    def __init__(self, digest_fn=None):
        self.initialize_calls: list[tuple[bytes, int]] = []
        self.preimages: list[bytes] = []
        self._digest_fn = digest_fn or (lambda preimage: hashlib.sha512(preimage).digest())

    def initialize(self, seed: bytes, memory_size: int) -> WorkMemory:
        self.initialize_calls.append((seed, memory_size))
        return WorkMemory(seed=seed, size=memory_size, data=b"stub")

    def digest(self, preimage, work_memory, loop_count, instruction_count) -> bytes:
        self.preimages.append(preimage)
        return self._digest_fn(preimage)


def nonces_of(preimages: list[bytes]) -> list[str]:
    """Nonce hex text at the front of each recorded preimage."""
    return [p[:16].decode("ascii") for p in preimages]
