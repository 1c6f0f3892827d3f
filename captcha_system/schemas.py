"""Pydantic models shared by the verifier and the HTTP layer."""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field


class TrajectorySample(BaseModel):
    """One recorded pointer position."""

    x: float
    y: float
    timestamp: float = Field(..., description="Milliseconds; non-decreasing within a trajectory")


class SubScore(BaseModel):
    score: float = Field(..., ge=0.0, le=1.0)
    reason: str


class VerificationDetails(BaseModel):
    trajectory: SubScore
    velocity: SubScore
    repetition: SubScore
    total_score: float


class VerificationResult(BaseModel):
    """Result of a trajectory verification.

    ``details`` is only present when the trajectory passed the early-reject
    checks and all three sub-scores were computed.
    """

    is_valid: bool
    reason: str
    details: Optional[VerificationDetails] = None


class VerificationError(BaseModel):
    kind: Literal["internal_error"] = "internal_error"
    message: str


class VerificationOutcome(BaseModel):
    """Either a result or a structured error, never both."""

    result: Optional[VerificationResult] = None
    error: Optional[VerificationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# --- HTTP payloads ---

class CaptchaVerifyRequest(BaseModel):
    captcha_id: str
    duration: float = Field(..., description="Drag duration in milliseconds")
    # A missing trail is a negative verification, not a malformed request
    trail: Optional[List[TrajectorySample]] = Field(default=None, description="Recorded drag trajectory")


class CaptchaChallengeData(BaseModel):
    captcha_id: str
    # Image generation is not implemented; URLs are placeholders
    bg_url: str
    puzzle_url: str
    expires_at: str


class ApiResponse(BaseModel):
    """Standard response envelope."""

    code: int
    message: str
    data: Optional[Any] = None
