from pydantic import BaseModel, model_validator
from typing import Optional


class ScanRequest(BaseModel):
    qrData:     Optional[str] = None
    manualCode: Optional[str] = None

    @model_validator(mode="after")
    def check_one(self) -> "ScanRequest":
        if not (self.qrData or self.manualCode):
            raise ValueError("QR data or manual code required")
        return self
