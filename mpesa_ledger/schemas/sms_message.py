from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class SmsMessage(BaseModel):
    """One inbox record as handed over by a message source."""
    native_id: str = Field(..., min_length=1, max_length=64, description="Message id assigned by the source")
    body: str = Field(..., description="Message text")
    timestamp: int = Field(..., ge=0, description="Receipt time, milliseconds since epoch")
    address: Optional[str] = Field(None, description="Sender address, e.g. MPESA")

    model_config = ConfigDict(coerce_numbers_to_str=True)

    @property
    def received_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp / 1000)
