from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from functools import partial

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from charwizard.db.models import DailyUsage
from charwizard.modules.telemetry.service import record_quota_rejection
from charwizard.utils.time import today_in, utc_now_naive

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class QuotaPolicy:
    daily_limit: int = 200
    timezone: str = "UTC"


@dataclass(frozen=True, slots=True)
class UsageInfo:
    allowed: bool
    used: int
    limit: int
    remaining: int

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining,
        }


class QuotaExceededError(RuntimeError):
    def __init__(self, usage: UsageInfo):
        self.usage = usage
        super().__init__(f"本日のAI使用制限（{usage.limit}回）に達しました。明日またお試しください。")


class QuotaEnforcer:
    """Per-user daily completion-call counter.

    Checking and recording are separate steps: two concurrent requests may both
    pass `check_limit` at `limit - 1` and both record, ending one over the limit.
    The increment itself is a single atomic statement.
    """

    def __init__(self, policy: QuotaPolicy, *, clock: Callable[[], date] | None = None):
        self.policy = policy
        self._clock = clock or partial(today_in, policy.timezone)

    def today(self) -> date:
        return self._clock()

    def current_usage(self, db: Session, user_id: str) -> int:
        count = db.execute(
            select(DailyUsage.completion_call_count).where(
                DailyUsage.user_id == user_id,
                DailyUsage.usage_date == self.today(),
            )
        ).scalar_one_or_none()
        return int(count or 0)

    def check_limit(self, db: Session, user_id: str) -> UsageInfo:
        used = self.current_usage(db, user_id)
        limit = int(self.policy.daily_limit)
        return UsageInfo(
            allowed=used < limit,
            used=used,
            limit=limit,
            remaining=max(0, limit - used),
        )

    def ensure_allowed(self, db: Session, user_id: str) -> UsageInfo:
        usage = self.check_limit(db, user_id)
        if not usage.allowed:
            record_quota_rejection()
            logger.info("quota exhausted user=%s used=%s limit=%s", user_id, usage.used, usage.limit)
            raise QuotaExceededError(usage)
        return usage

    def record_usage(self, db: Session, user_id: str) -> None:
        usage_date = self.today()
        now = utc_now_naive()
        dialect = db.get_bind().dialect.name
        if dialect in {"sqlite", "postgresql"}:
            insert_fn = sqlite.insert if dialect == "sqlite" else postgresql.insert
            table = DailyUsage.__table__
            stmt = insert_fn(table).values(
                user_id=user_id,
                usage_date=usage_date,
                completion_call_count=1,
                created_at=now,
                updated_at=now,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.user_id, table.c.usage_date],
                set_={
                    "completion_call_count": table.c.completion_call_count + 1,
                    "updated_at": now,
                },
            )
            db.execute(stmt)
        else:
            self._record_usage_portable(db, user_id=user_id, usage_date=usage_date, now=now)
        db.commit()

    @staticmethod
    def _record_usage_portable(db: Session, *, user_id: str, usage_date: date, now: datetime) -> None:
        try:
            with db.begin_nested():
                db.add(
                    DailyUsage(
                        user_id=user_id,
                        usage_date=usage_date,
                        completion_call_count=1,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            db.execute(
                update(DailyUsage)
                .where(DailyUsage.user_id == user_id, DailyUsage.usage_date == usage_date)
                .values(
                    completion_call_count=DailyUsage.completion_call_count + 1,
                    updated_at=now,
                )
            )
