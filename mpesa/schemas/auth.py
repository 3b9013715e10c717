"""Auth Schemas — access token as returned by token generation."""

from pydantic import BaseModel, ConfigDict, Field


class AccessToken(BaseModel):
    """Access token handed to callers of AuthService.generate_token()."""
    model_config = ConfigDict(frozen=True)

    access_token: str = Field(repr=False)
    token_type: str = "Bearer"
    expires_in: int = Field(ge=0)
