import re

# Only the leading bytes of the target take part in the comparison
COMPARED_PREFIX_BYTES = 4

_HEX_RE = re.compile(r"(?:[0-9a-fA-F]{2})*")


def decode_difficulty(difficulty: str) -> bytes | None:
    """Strictly decode a hex difficulty. Returns None when it is not valid hex."""
    # bytes.fromhex() tolerates whitespace, the server's encoding does not
    if not _HEX_RE.fullmatch(difficulty):
        return None
    return bytes.fromhex(difficulty)


def meets_target(digest: bytes, target: bytes | None) -> bool:
    """
    Check a digest against a decoded target.

    The digest must be lexicographically <= the target over the first
    min(4, len(target)) bytes, unsigned and most significant byte first.
    An undecodable target never matches.
    """
    if target is None:
        return False

    window = min(COMPARED_PREFIX_BYTES, len(target))
    if len(digest) < window:
        return False

    return digest[:window] <= target[:window]


def meets_difficulty(digest: bytes, difficulty: str) -> bool:
    return meets_target(digest, decode_difficulty(difficulty))
