"""Pydantic models for token endpoint results and cached token state."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TokenResponse(BaseModel):
    """A successful token endpoint response, with expiry already computed."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = Field(default="Bearer")
    expires_in: int = Field(..., gt=0, description="Lifetime in seconds as issued")
    refresh_token: str | None = None
    scope: str = Field(default="", description="Granted scope, or the requested one")
    issued_at: float = Field(..., description="Epoch seconds when the response arrived")
    expires_at: float = Field(..., description="issued_at + expires_in - clock skew")


class TokenState(BaseModel):
    """Snapshot of one client's cached token. Replaced, never mutated."""

    model_config = ConfigDict(frozen=True)

    access_token: str | None = None
    refresh_token: str | None = None
    expires_at: float | None = None
    scope: str | None = None

    @classmethod
    def from_response(cls, response: TokenResponse) -> "TokenState":
        return cls(
            access_token=response.access_token,
            refresh_token=response.refresh_token,
            expires_at=response.expires_at,
            scope=response.scope,
        )

    def is_valid(self, now: float) -> bool:
        if not self.access_token or self.expires_at is None:
            return False
        return now < self.expires_at


EMPTY_STATE = TokenState()
