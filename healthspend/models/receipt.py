from pydantic import BaseModel, Field

class ReceiptUpdateRequest(BaseModel):
    date: str | None = Field(default=None, description="YYYY-MM-DD")
    vendor: str | None = Field(default=None)
    service_type: str | None = Field(default="Other")
    amount: float | str | None = Field(default=None)
