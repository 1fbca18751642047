from scavenger.schemas.challenge import Challenge, ChallengeResponse
from scavenger.schemas.receipts import (
    CryptoReceipt,
    RegistrationReceipt,
    RegistrationResponse,
    SolutionResponse,
    TermsResponse,
)

__all__ = [
    "Challenge",
    "ChallengeResponse",
    "CryptoReceipt",
    "RegistrationReceipt",
    "RegistrationResponse",
    "SolutionResponse",
    "TermsResponse",
]
