from __future__ import annotations

import logging
import time
from typing import Optional, Tuple

import anyio
from google.cloud import firestore

from catalog_chat.models import RateLimitTicket

logger = logging.getLogger(__name__)

_DAY_SECONDS = 24 * 60 * 60


@firestore.transactional
def _admit_in_transaction(
    transaction: firestore.Transaction,
    doc_ref: firestore.DocumentReference,
    now: float,
    limit: int,
    window_seconds: int,
) -> Tuple[bool, int]:
    snapshot = doc_ref.get(transaction=transaction)
    data = (snapshot.to_dict() or {}) if snapshot.exists else {}
    cutoff = now - window_seconds
    hits = [t for t in data.get("hits", []) if t > cutoff]

    if len(hits) >= limit:
        return False, len(hits)

    hits.append(now)
    transaction.set(doc_ref, {"hits": hits, "updated_at": now})
    return True, len(hits)


class FirestoreRateLimiter:
    """Per caller admission control over a rolling window (one day by default).

    Each caller has one document holding the timestamps of its admitted
    requests inside the window.
    """

    def __init__(
        self,
        db: firestore.Client,
        daily_limit: int,
        collection: str = "rate_limits",
        window_seconds: int = _DAY_SECONDS,
    ):
        self.db = db
        self.daily_limit = daily_limit
        self.window_seconds = window_seconds
        self._coll = db.collection(collection)
        logger.info("FirestoreRateLimiter initialized: %d requests per %ds", daily_limit, window_seconds)

    @staticmethod
    def _doc_id(caller_id: str) -> str:
        # Firestore document ids cannot contain "/"
        return caller_id.replace("/", "_").strip(".") or "unknown"

    def _admit_sync(self, caller_id: str, now: Optional[float] = None) -> RateLimitTicket:
        doc_ref = self._coll.document(self._doc_id(caller_id))
        admitted, count = _admit_in_transaction(
            self.db.transaction(),
            doc_ref,
            now if now is not None else time.time(),
            self.daily_limit,
            self.window_seconds,
        )
        return RateLimitTicket(caller_id=caller_id, admitted=admitted, count=count, limit=self.daily_limit)

    async def admit(self, caller_id: str) -> RateLimitTicket:
        """Count one request for *caller_id* unless its quota is used up.

        If Firestore cannot be reached the request is denied.
        """
        try:
            ticket = await anyio.to_thread.run_sync(self._admit_sync, caller_id)
        except Exception as exc:
            logger.error("Rate limit check failed for %s; denying request: %s", caller_id, exc, exc_info=True)
            return RateLimitTicket(caller_id=caller_id, admitted=False, count=0, limit=self.daily_limit)

        if not ticket.admitted:
            logger.warning("Caller %s exceeded daily limit (%d)", caller_id, self.daily_limit)
        return ticket
