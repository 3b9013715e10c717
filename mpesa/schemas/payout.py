"""Payout Schemas — B2C disbursement payload and acknowledgement."""

from pydantic import BaseModel, ConfigDict, Field


class PayoutPayload(BaseModel):
    """Body of POST /mpesa/b2c/v2/paymentrequest."""
    model_config = ConfigDict(populate_by_name=True)

    originator_conversation_id: str = Field(alias="OriginatorConversationID")
    initiator_name: str = Field(alias="InitiatorName")
    security_credential: str = Field(alias="SecurityCredential", repr=False)
    command_id: str = Field(alias="CommandID")
    party_a: str = Field(alias="PartyA")
    party_b: str = Field(alias="PartyB")
    amount: int = Field(alias="Amount")
    remarks: str = Field(alias="Remarks")
    # Provider spelling.
    occasion: str = Field(default="", alias="Occassion")
    queue_timeout_url: str = Field(alias="QueueTimeOutURL")
    result_url: str = Field(alias="ResultURL")


class PayoutResponse(BaseModel):
    """Synchronous acknowledgement; the result is posted to ResultURL."""
    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", coerce_numbers_to_str=True,
    )

    conversation_id: str = Field(alias="ConversationID")
    originator_conversation_id: str = Field(alias="OriginatorConversationID")
    response_code: str = Field(alias="ResponseCode")
    response_description: str = Field(default="", alias="ResponseDescription")
