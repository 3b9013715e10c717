"""Register URL Schemas — C2B confirmation/validation URL registration."""

from pydantic import BaseModel, ConfigDict, Field


class RegisterUrlPayload(BaseModel):
    """Body of POST /v1/c2b-register-url/register."""
    model_config = ConfigDict(populate_by_name=True)

    short_code: str = Field(alias="ShortCode")
    response_type: str = Field(alias="ResponseType")
    command_id: str = Field(default="RegisterURL", alias="CommandID")
    confirmation_url: str = Field(alias="ConfirmationURL")
    validation_url: str = Field(alias="ValidationURL")


class RegisterUrlHeader(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    response_code: int = Field(alias="responseCode")
    response_message: str = Field(default="", alias="responseMessage")
    customer_message: str = Field(default="", alias="customerMessage")
    timestamp: str = ""


class RegisterUrlResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    header: RegisterUrlHeader
    short_code: str = ""
