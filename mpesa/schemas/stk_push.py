"""STK Push Schemas — USSD push payment payload and acknowledgement."""

from pydantic import BaseModel, ConfigDict, Field


class ReferenceItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(alias="Key")
    value: str = Field(alias="Value")


class StkPushPayload(BaseModel):
    """Body of POST /mpesa/stkpush/v3/processrequest."""
    model_config = ConfigDict(populate_by_name=True)

    merchant_request_id: str = Field(alias="MerchantRequestID")
    business_short_code: str = Field(alias="BusinessShortCode")
    password: str = Field(alias="Password", repr=False)
    timestamp: str = Field(alias="Timestamp")
    transaction_type: str = Field(alias="TransactionType")
    amount: int = Field(alias="Amount")
    party_a: str = Field(alias="PartyA")
    party_b: str = Field(alias="PartyB")
    phone_number: str = Field(alias="PhoneNumber")
    transaction_desc: str = Field(alias="TransactionDesc")
    callback_url: str = Field(alias="CallBackURL")
    account_reference: str = Field(alias="AccountReference")
    reference_data: list[ReferenceItem] = Field(default_factory=list, alias="ReferenceData")


class StkPushResponse(BaseModel):
    """Synchronous acknowledgement; the payment outcome arrives on the callback URL."""
    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", coerce_numbers_to_str=True,
    )

    merchant_request_id: str = Field(alias="MerchantRequestID")
    checkout_request_id: str = Field(alias="CheckoutRequestID")
    response_code: str = Field(alias="ResponseCode")
    response_description: str = Field(default="", alias="ResponseDescription")
    customer_message: str = Field(default="", alias="CustomerMessage")
