"""Per-pull-request mutual exclusion between concurrent runs.

The lock is a property on the pull request itself, so every runner sees the
same state without shared storage. Read-then-write is not atomic: two runs
starting within the same instant can both believe they hold the lock. The
command processor and the reconciler are idempotent, which keeps that race
harmless.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from typolens_core.gateway.base import BaseGateway, GatewayError

logger = logging.getLogger(__name__)

LOCK_PROPERTY = "typolens.lock"


@dataclass
class LockResult:
    acquired: bool
    owner_id: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_record(raw: str) -> tuple[str, datetime | None]:
    """Return (run_id, acquired_at) from a stored lock value.

    Values written by hand or by older runs may be a bare run id.
    """
    try:
        data = json.loads(raw)
    except ValueError:
        return raw, None
    if not isinstance(data, dict) or "run_id" not in data:
        return raw, None
    acquired_at = None
    try:
        acquired_at = datetime.fromisoformat(data["acquired_at"])
    except (KeyError, TypeError, ValueError):
        pass
    if acquired_at is not None and acquired_at.tzinfo is None:
        acquired_at = acquired_at.replace(tzinfo=timezone.utc)
    return str(data["run_id"]), acquired_at


class PullRequestLock:
    def __init__(
        self,
        gateway: BaseGateway,
        ttl: timedelta | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.gateway = gateway
        self.ttl = ttl
        self.clock = clock

    def _expired(self, acquired_at: datetime | None) -> bool:
        if self.ttl is None or acquired_at is None:
            return False
        return self.clock() - acquired_at > self.ttl

    def acquire(self, pr_number: int, run_id: str) -> LockResult:
        run_id = str(run_id)
        try:
            raw = self.gateway.get_pull_request_property(pr_number, LOCK_PROPERTY)
        except GatewayError as e:
            logger.error("Could not read the lock on pull request #%s: %s", pr_number, e)
            return LockResult(acquired=False)

        if raw:
            owner, acquired_at = _parse_record(raw)
            if owner == run_id:
                logger.debug("Lock on pull request #%s already held by this run (%s).", pr_number, run_id)
                return LockResult(acquired=True, owner_id=run_id)
            if not self._expired(acquired_at):
                logger.info("Pull request #%s is locked by run %s.", pr_number, owner)
                return LockResult(acquired=False, owner_id=owner)
            logger.warning("Taking over expired lock of run %s on pull request #%s.", owner, pr_number)

        record = json.dumps({"run_id": run_id, "acquired_at": self.clock().isoformat()})
        try:
            self.gateway.set_pull_request_property(pr_number, LOCK_PROPERTY, record)
        except GatewayError as e:
            logger.error("Could not write the lock on pull request #%s: %s", pr_number, e)
            return LockResult(acquired=False)
        return LockResult(acquired=True, owner_id=run_id)

    def release(self, pr_number: int) -> None:
        try:
            self.gateway.delete_pull_request_property(pr_number, LOCK_PROPERTY)
        except GatewayError as e:
            # A stuck lock blocks later runs until removed by hand (or until the TTL, if set).
            logger.error("Could not release the lock on pull request #%s: %s", pr_number, e)
