"""In-memory CAPTCHA challenge storage.

Every state transition happens under a lock, so a challenge can move from
ACTIVE to USED at most once even when the same trajectory is replayed
concurrently.
"""

import random
import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Optional

from captcha_system.config.constants import (CAPTCHA_EXPIRY_SECONDS,
                                             TARGET_X_MIN, TARGET_X_SPAN,
                                             TARGET_Y_MIN, TARGET_Y_SPAN)
from captcha_system.logging_utils import get_trace_logger


class ChallengeStatus(str, Enum):
    ACTIVE = "ACTIVE"
    USED = "USED"
    EXPIRED = "EXPIRED"


@dataclass(frozen=True)
class ChallengeRecord:
    challenge_id: str
    # Intended drop position; not compared against the submitted trajectory
    target_x: int
    target_y: int
    created_at: datetime
    expires_at: datetime
    status: ChallengeStatus = ChallengeStatus.ACTIVE
    verified_at: Optional[datetime] = None


class ChallengeStore:
    def __init__(self, ttl_seconds: int = CAPTCHA_EXPIRY_SECONDS,
                 clock: Callable[[], datetime] = datetime.now,
                 rng: Optional[random.Random] = None):
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._records: Dict[str, ChallengeRecord] = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._records)

    def count(self, status: Optional[ChallengeStatus] = None) -> int:
        with self._lock:
            if status is None:
                return len(self._records)
            return sum(1 for r in self._records.values() if r.status == status)

    def create_challenge(self) -> ChallengeRecord:
        """Issue a new ACTIVE challenge with a random target position."""
        now = self._clock()
        record = ChallengeRecord(
            challenge_id=str(uuid.uuid4()),
            target_x=TARGET_X_MIN + self._rng.randrange(TARGET_X_SPAN),
            target_y=TARGET_Y_MIN + self._rng.randrange(TARGET_Y_SPAN),
            created_at=now,
            expires_at=now + self.ttl,
        )
        with self._lock:
            self._records[record.challenge_id] = record

        get_trace_logger(record.challenge_id, __name__).info(
            "Challenge created: target=(%d, %d) expires_at=%s",
            record.target_x, record.target_y, record.expires_at.isoformat())
        return record

    def get(self, challenge_id: str) -> Optional[ChallengeRecord]:
        with self._lock:
            return self._records.get(challenge_id)

    def _is_active(self, record: Optional[ChallengeRecord], now: datetime) -> bool:
        return (record is not None
                and record.status == ChallengeStatus.ACTIVE
                and record.expires_at > now)

    def find_active(self, challenge_id: str) -> Optional[ChallengeRecord]:
        """Return the challenge if it is ACTIVE and not yet expired, else None."""
        now = self._clock()
        with self._lock:
            record = self._records.get(challenge_id)
            return record if self._is_active(record, now) else None

    def mark_used(self, challenge_id: str, verified_at: Optional[datetime] = None) -> bool:
        """Atomically transition an ACTIVE, unexpired challenge to USED.

        Returns:
            True if this call performed the transition, False if the challenge
            is missing, already used, or expired.
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(challenge_id)
            if not self._is_active(record, now):
                return False
            self._records[challenge_id] = replace(
                record, status=ChallengeStatus.USED, verified_at=verified_at or now)

        get_trace_logger(challenge_id, __name__).info("Challenge marked USED")
        return True

    def expire_stale(self) -> int:
        """Flip ACTIVE challenges past their expiry to EXPIRED. Returns the count."""
        now = self._clock()
        expired = 0
        with self._lock:
            for cid, record in self._records.items():
                if record.status == ChallengeStatus.ACTIVE and record.expires_at <= now:
                    self._records[cid] = replace(record, status=ChallengeStatus.EXPIRED)
                    expired += 1
        return expired

    def purge(self, older_than: timedelta) -> int:
        """Drop USED/EXPIRED challenges whose expiry is older than ``older_than``."""
        cutoff = self._clock() - older_than
        with self._lock:
            stale = [
                cid for cid, record in self._records.items()
                if record.status != ChallengeStatus.ACTIVE and record.expires_at < cutoff
            ]
            for cid in stale:
                del self._records[cid]
        return len(stale)

    def clear(self):
        with self._lock:
            self._records.clear()
