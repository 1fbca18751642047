from pydantic import BaseModel, ConfigDict, Field


class Challenge(BaseModel):
    """One mining round as issued by the server. Immutable for the round."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    challenge_id: str = Field(..., min_length=1)
    day: int = Field(..., ge=0)
    challenge_number: int = Field(..., ge=0)
    # Kept as text: it is hashed verbatim and a malformed value must never match
    difficulty: str = Field(..., min_length=1, description="Hex-encoded target")
    no_pre_mine: str = Field(..., min_length=1, description="Work memory seed")
    latest_submission: str = Field(..., min_length=1)
    no_pre_mine_hour: str = Field(..., min_length=1)


class ChallengeResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: str
    challenge: Challenge | None = None
    mining_period_ends: str | None = None

    @property
    def is_active(self) -> bool:
        return self.code == "active" and self.challenge is not None
