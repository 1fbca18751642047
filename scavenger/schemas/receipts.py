from pydantic import BaseModel, ConfigDict, Field


class TermsResponse(BaseModel):
    version: str
    content: str
    message: str = Field(..., description="Text the miner's wallet must sign")


class RegistrationReceipt(BaseModel):
    preimage: str
    signature: str
    timestamp: str


class RegistrationResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    registration_receipt: RegistrationReceipt | None = Field(
        default=None, alias="registrationReceipt"
    )


class CryptoReceipt(BaseModel):
    preimage: str
    timestamp: str
    signature: str


class SolutionResponse(BaseModel):
    """Answer to a submitted nonce. Accepted iff a receipt is present."""

    model_config = ConfigDict(extra="allow")

    crypto_receipt: CryptoReceipt | None = None

    @property
    def accepted(self) -> bool:
        return self.crypto_receipt is not None
