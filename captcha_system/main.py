"""FastAPI application for the slide CAPTCHA.

Provides endpoints for issuing CAPTCHA challenges and verifying the drag
trajectory a client recorded while solving one. Every response uses the
``{code, message, data}`` envelope.
"""

from datetime import datetime, timedelta
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from captcha_system import __version__
from captcha_system.config.constants import (CAPTCHA_HEURISTICS_FILE,
                                             CAPTCHA_RATE_LIMIT,
                                             CAPTCHA_RETENTION_MINUTES, HOST,
                                             PLACEHOLDER_IMAGE_URL, PORT,
                                             RATE_LIMIT_ENABLED,
                                             VERIFY_RATE_LIMIT)
from captcha_system.logging_utils import configure_logging, get_trace_logger
from captcha_system.schemas import (ApiResponse, CaptchaChallengeData,
                                    CaptchaVerifyRequest)
from captcha_system.store import ChallengeStatus, ChallengeStore
from captcha_system.trajectory.heuristics import load_heuristics
from captcha_system.trajectory.verifier import evaluate

MSG_SUCCESS = "success"
MSG_CAPTCHA_INVALID = "captcha invalid or expired"
MSG_VERIFY_FAILED = "verification failed"
MSG_ISSUE_FAILED = "failed to generate captcha"
MSG_BAD_REQUEST = "invalid request parameters"
MSG_INTERNAL = "internal server error"

logger = configure_logging()

# Rate limiter setup
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)
app = FastAPI(title="Slide CAPTCHA API", version=__version__)
app.state.limiter = limiter
app.state.challenge_store = ChallengeStore()
app.state.heuristics = load_heuristics(CAPTCHA_HEURISTICS_FILE)

logger.info("Starting CAPTCHA service: ttl=%s heuristics_file=%s rate_limit=%s",
            app.state.challenge_store.ttl, CAPTCHA_HEURISTICS_FILE or "-", RATE_LIMIT_ENABLED)


def envelope(code: int, message: str, data: Any = None) -> JSONResponse:
    body = ApiResponse(code=code, message=message, data=data)
    return JSONResponse(status_code=code, content=jsonable_encoder(body))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("Rate limit exceeded from %s: %s", get_remote_address(request), exc.detail)
    return envelope(status.HTTP_429_TOO_MANY_REQUESTS, f"rate limit exceeded: {exc.detail}")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected malformed request to %s: %d error(s)", request.url.path, len(exc.errors()))
    return envelope(status.HTTP_400_BAD_REQUEST, MSG_BAD_REQUEST, {"errors": jsonable_encoder(exc.errors())})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return envelope(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, MSG_INTERNAL)


def cleanup_expired_captchas(store: ChallengeStore):
    """Expire overdue challenges and drop old used/expired ones."""
    expired = store.expire_stale()
    purged = store.purge(timedelta(minutes=CAPTCHA_RETENTION_MINUTES))
    if expired or purged:
        logger.debug("Challenge cleanup: expired=%d purged=%d", expired, purged)


@app.api_route("/captcha", methods=["GET", "POST"])
@limiter.limit(CAPTCHA_RATE_LIMIT)
async def generate_captcha_challenge(request: Request):
    """Issue a new slide CAPTCHA challenge.

    Rate limited per client IP address.

    Returns:
        Envelope with the captcha id, placeholder image URLs and expiry.
    """
    store: ChallengeStore = request.app.state.challenge_store
    try:
        cleanup_expired_captchas(store)
        record = store.create_challenge()
    except Exception:
        logger.exception("Failed to generate CAPTCHA")
        return envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, MSG_ISSUE_FAILED)

    data = CaptchaChallengeData(
        captcha_id=record.challenge_id,
        bg_url=PLACEHOLDER_IMAGE_URL,
        puzzle_url=PLACEHOLDER_IMAGE_URL,
        expires_at=record.expires_at.isoformat(),
    )
    return envelope(status.HTTP_200_OK, MSG_SUCCESS, data.model_dump())


@app.post("/captcha/verify")
@limiter.limit(VERIFY_RATE_LIMIT)
async def verify_captcha(verify_request: CaptchaVerifyRequest, request: Request):
    """Verify the drag trajectory submitted for a challenge.

    The challenge must be ACTIVE and unexpired. A passing trajectory marks it
    USED so it cannot be verified twice; a failing one leaves it untouched.

    Args:
        verify_request: captcha id, drag duration (ms) and recorded trail.
        request: FastAPI Request object for rate limiting.

    Returns:
        200 envelope on success, 400 for an unknown/expired challenge or a
        rejected trajectory, 500 on internal errors.
    """
    captcha_id = verify_request.captcha_id
    tlog = get_trace_logger(captcha_id)
    store: ChallengeStore = request.app.state.challenge_store

    try:
        if store.find_active(captcha_id) is None:
            tlog.warning("Verification for unknown, used or expired captcha")
            return envelope(status.HTTP_400_BAD_REQUEST, MSG_CAPTCHA_INVALID, {"verified": False})

        tlog.info("Verifying trajectory: points=%d duration=%.0fms",
                  len(verify_request.trail or []), verify_request.duration)
        outcome = evaluate(verify_request.trail, verify_request.duration,
                           request.app.state.heuristics, trace_id=captcha_id)
        if not outcome.ok:
            tlog.error("Verification error: %s", outcome.error.message)
            return envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, MSG_VERIFY_FAILED)

        result = outcome.result
        data = {
            "verified": result.is_valid,
            "reason": result.reason,
            "details": result.details.model_dump() if result.details else None,
        }

        if not result.is_valid:
            tlog.warning("Trajectory rejected: %s", result.reason)
            return envelope(status.HTTP_400_BAD_REQUEST, MSG_VERIFY_FAILED, data)

        # A concurrent request may have consumed the challenge in the meantime
        if not store.mark_used(captcha_id, datetime.now()):
            tlog.warning("Challenge was consumed before it could be marked used")
            return envelope(status.HTTP_400_BAD_REQUEST, MSG_CAPTCHA_INVALID, {"verified": False})

        tlog.info("Trajectory verified: total_score=%.4f", result.details.total_score)
        return envelope(status.HTTP_200_OK, MSG_SUCCESS, data)
    except Exception:
        tlog.exception("Verification failed with an internal error")
        return envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, MSG_VERIFY_FAILED)


@app.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    store: ChallengeStore = request.app.state.challenge_store
    return envelope(status.HTTP_200_OK, MSG_SUCCESS, {
        "status": "healthy",
        "version": __version__,
        "active_captchas": store.count(ChallengeStatus.ACTIVE),
    })


def run(host: Optional[str] = None, port: Optional[int] = None):
    uvicorn.run(app, host=host or HOST, port=port or PORT)


if __name__ == "__main__":
    run()
