"""Scavenger Mine HTTP API client: challenge source and submission sink."""

import httpx
import structlog

from scavenger.config import Settings, settings
from scavenger.schemas.challenge import ChallengeResponse
from scavenger.schemas.receipts import RegistrationResponse, SolutionResponse, TermsResponse

logger = structlog.get_logger()

PUBKEY_LENGTH = 64
# Used when surfacing API error bodies without log spam.
MAX_ERROR_BODY_CHARS = 2_000


class ApiError(RuntimeError):
    def __init__(self, status_code: int, body: str):
        super().__init__(f"API error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


def reward_for_day(rates: list[int], day: int) -> int | None:
    """Star reward for a challenge day (1-based index into the rate table)."""
    if 0 < day <= len(rates):
        return rates[day - 1]
    return None


class ScavengerClient:
    """
    Thin synchronous wrapper around the Scavenger Mine API.

    No retries: a failed call is reported to the caller as is.
    """

    def __init__(
        self,
        config: Settings | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        config = config or settings
        self._client = httpx.Client(
            base_url=config.api_base_url,
            headers={
                "User-Agent": config.user_agent,
                "Accept": "application/json, text/plain, */*",
            },
            timeout=config.http_timeout_seconds,
            transport=transport,
        )

    def __enter__(self) -> "ScavengerClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, endpoint: str) -> httpx.Response:
        # endpoint is logged instead of path, which embeds signatures and addresses
        response = self._client.request(method, path)
        if response.is_error:
            body = response.text[:MAX_ERROR_BODY_CHARS]
            logger.error(
                "api_error",
                method=method,
                endpoint=endpoint,
                status_code=response.status_code,
            )
            raise ApiError(response.status_code, body)
        return response

    def get_terms(self) -> TermsResponse:
        response = self._request("GET", "/TandC", "terms")
        return TermsResponse.model_validate(response.json())

    def register(self, address: str, signature: str, pubkey: str) -> RegistrationResponse:
        """Register a wallet address with its signature over the T&C message."""
        if len(pubkey) != PUBKEY_LENGTH:
            raise ValueError(
                f"Invalid pubkey length: {len(pubkey)} (expected {PUBKEY_LENGTH})"
            )

        path = f"/register/{address}/{signature}/{pubkey}"
        response = self._request("POST", path, "register")
        result = RegistrationResponse.model_validate(response.json())
        logger.info(
            "wallet_registered",
            has_receipt=result.registration_receipt is not None,
        )
        return result

    def get_challenge(self) -> ChallengeResponse:
        response = self._request("GET", "/challenge", "challenge")
        return ChallengeResponse.model_validate(response.json())

    def submit_solution(self, address: str, challenge_id: str, nonce: str) -> SolutionResponse:
        """Report a winning nonce. The nonce is sent exactly as found."""
        path = f"/solution/{address}/{challenge_id}/{nonce}"
        response = self._request("POST", path, "solution")
        result = SolutionResponse.model_validate(response.json())
        logger.info(
            "solution_submitted",
            challenge_id=challenge_id,
            nonce=nonce,
            accepted=result.accepted,
        )
        return result

    def get_star_rate(self) -> list[int]:
        response = self._request("GET", "/work_to_star_rate", "star_rate")
        return [int(rate) for rate in response.json()]
