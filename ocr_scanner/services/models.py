from pydantic import BaseModel, Field
from typing import Literal, Optional

from ocr_scanner.orchestrator.contracts import Outcome


class ScanRequest(BaseModel):
    # Any field left out falls back to ScanSettings (env)
    pattern: Optional[str] = None
    device_timeout: Optional[float] = Field(default=None, gt=0)
    poll_interval: Optional[float] = Field(default=None, ge=0)
    poll_timeout: Optional[float] = Field(default=None, gt=0)
    allow_cloud: bool = True


class ScanResponse(BaseModel):
    ok: bool                               # True only when the pattern was found
    duration_ms: int
    outcome: Optional[Outcome] = None
    matched_text: Optional[str] = None
    stage: Optional[Literal["device", "cloud"]] = None
    device_outcome: Optional[Outcome] = None
    error_code: Optional[str] = None


class DeviceScanRequest(BaseModel):
    pattern: Optional[str] = None
    timeout: Optional[float] = Field(default=None, gt=0)


class DeviceScanResponse(BaseModel):
    ok: bool
    duration_ms: int = 0
    outcome: Optional[Outcome] = None
    matched_text: Optional[str] = None
    candidate_text_length: int = 0
    frames_evaluated: int = 0
    frames_dropped: int = 0
    frames_failed: int = 0
    error_code: Optional[str] = None


class RecognizeFrameRequest(BaseModel):
    image: str  # base64 JPEG/PNG
    pattern: Optional[str] = None


class RecognizeFrameResponse(BaseModel):
    ok: bool
    lines: list[str] = []
    matched_text: Optional[str] = None
    error: Optional[str] = None


class StatusResponse(BaseModel):
    busy: bool
    last_error: Optional[str] = None
    last_report: Optional[ScanResponse] = None
    logs: list[str]
