from scavenger.schemas.challenge import Challenge

NONCE_BITS = 64
NONCE_MASK = (1 << NONCE_BITS) - 1


def format_nonce(nonce: int) -> str:
    """Render a nonce as 16 lowercase hex digits, zero-padded, no prefix."""
    if not 0 <= nonce <= NONCE_MASK:
        raise ValueError(f"Nonce out of 64-bit range: {nonce}")
    return f"{nonce:016x}"


def preimage_suffix(address: str, challenge: Challenge) -> bytes:
    """Everything hashed after the nonce. Constant for one miner and one round."""
    return (
        address
        + challenge.challenge_id
        + challenge.difficulty
        + challenge.no_pre_mine
        + challenge.latest_submission
        + challenge.no_pre_mine_hour
    ).encode("utf-8")


def build_preimage(nonce: int | str, address: str, challenge: Challenge) -> bytes:
    """
    Build the exact bytes hashed for one attempt.

    Format: nonce_hex || address || challenge_id || difficulty || no_pre_mine
    || latest_submission || no_pre_mine_hour, UTF-8, no separators.
    The server rebuilds the same string to verify a solution.
    """
    nonce_hex = format_nonce(nonce) if isinstance(nonce, int) else nonce
    return nonce_hex.encode("utf-8") + preimage_suffix(address, challenge)
