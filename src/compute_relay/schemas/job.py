"""Pydantic schemas for job submission and heartbeat ingestion."""
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator

_TRUE_WORDS = {"y", "yes", "true"}
_FALSE_WORDS = {"n", "no", "false"}


def parse_flag(raw: Any, default: bool = True) -> bool:
    """
    Parse a loosely formatted boolean form value.

    Accepts booleans, true/false, integers (non-zero is true) and y/yes/n/no.
    Blank or unrecognized values fall back to the default.

    Args:
        raw: Submitted value
        default: Value used when raw is blank or unrecognized

    Returns:
        bool: Parsed flag
    """
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int):
        return raw != 0

    text = str(raw).strip().lower()
    if not text:
        return default
    if text in _TRUE_WORDS:
        return True
    if text in _FALSE_WORDS:
        return False
    try:
        return int(text) != 0
    except ValueError:
        return default


class JobSubmission(BaseModel):
    """Schema for submitting a new compute job."""

    correlation_id: Optional[str] = Field(
        default=None, max_length=200, description="Caller-supplied job id (generated if omitted)"
    )
    domain_value: float = Field(default=4.0, gt=0, description="Numeric domain parameter")
    generate_follow_up: bool = Field(
        default=True, description="Chain a follow-up job after successful completion"
    )
    max_retries: Optional[int] = Field(
        default=None, ge=0, description="Maximum job-level retries (service default if omitted)"
    )
    priority: int = Field(default=0, description="Stored for callers; not used for ordering")
    upload_url: Optional[str] = Field(default=None, description="Result upload destination")
    upload_token: Optional[str] = Field(
        default=None, description="Bearer credential for the upload destination", repr=False
    )
    owner_id: Optional[str] = Field(default=None, description="Submitting user")
    client_id: Optional[str] = Field(default=None, description="Submitting client")

    @field_validator("correlation_id", "upload_url", "upload_token", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("generate_follow_up", mode="before")
    @classmethod
    def loose_flag(cls, value: Any) -> bool:
        return parse_flag(value, default=True)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "correlation_id": "scan-2024-001",
                    "domain_value": 4.0,
                    "generate_follow_up": True,
                    "upload_url": "https://gateway.example.com/results/scan-2024-001",
                    "upload_token": "token",
                }
            ]
        }
    }


class HeartbeatIngest(BaseModel):
    """Schema for a heartbeat posted by the compute program."""

    correlation_id: str = Field(..., min_length=1, description="Job correlation id")
    message: str = Field(..., min_length=1, description="Progress description")

    @field_validator("correlation_id", "message", mode="before")
    @classmethod
    def strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value
