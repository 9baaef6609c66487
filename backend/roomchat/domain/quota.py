"""
Quota Ledger

Pure functions over a user's daily prompt counter. No I/O happens here;
callers are responsible for running ``authorize``, ``reserve_prompt`` and
``record_usage`` inside a transaction that holds a row lock on the user.

Day boundaries are computed from UTC calendar dates only, so requests made
from different timezones agree on when the counter resets.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from roomchat.domain.subscription import SubscriptionTier


DEFAULT_DAILY_PROMPT_LIMIT = 50


@dataclass(frozen=True)
class QuotaDecision:
    """Outcome of a quota check."""
    allowed: bool
    reset_counter_to: Optional[int] = None

    @property
    def reset_due(self) -> bool:
        return self.reset_counter_to is not None


@dataclass(frozen=True)
class UsageUpdate:
    """Counter fields to persist after a quota transition."""
    daily_prompt_count: int
    last_prompt_reset: Optional[datetime]
    pending_prompt_count: int = 0


def start_of_utc_day(now: datetime) -> datetime:
    """Midnight UTC of the UTC calendar day containing ``now``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return datetime(now.year, now.month, now.day, tzinfo=timezone.utc)


def is_reset_due(last_prompt_reset: Optional[datetime], now: datetime) -> bool:
    """True when the counter belongs to an earlier UTC day (or was never set)."""
    if last_prompt_reset is None:
        return True
    return start_of_utc_day(last_prompt_reset) < start_of_utc_day(now)


def authorize(
    tier: SubscriptionTier,
    daily_prompt_count: int,
    last_prompt_reset: Optional[datetime],
    now: datetime,
    daily_limit: int = DEFAULT_DAILY_PROMPT_LIMIT,
    pending_prompt_count: int = 0,
) -> QuotaDecision:
    """
    Decide whether a new prompt may be submitted.

    PRO users are always allowed. For BASIC users, prompts already admitted
    but not yet answered count against the limit alongside consumed ones.
    A stale reset date means both are treated as 0 for this check.
    """
    if tier == SubscriptionTier.PRO:
        return QuotaDecision(allowed=True)

    if is_reset_due(last_prompt_reset, now):
        return QuotaDecision(allowed=0 < daily_limit, reset_counter_to=0)

    return QuotaDecision(allowed=daily_prompt_count + pending_prompt_count < daily_limit)


def reserve_prompt(
    daily_prompt_count: int,
    last_prompt_reset: Optional[datetime],
    pending_prompt_count: int,
    now: datetime,
) -> UsageUpdate:
    """
    Counter state after one prompt has been admitted to the queue.

    Reservations do not survive a UTC day rollover, so one lost job can
    hold a slot for the rest of its day at most.
    """
    if is_reset_due(last_prompt_reset, now):
        return UsageUpdate(
            daily_prompt_count=0,
            last_prompt_reset=start_of_utc_day(now),
            pending_prompt_count=1,
        )

    return UsageUpdate(
        daily_prompt_count=daily_prompt_count,
        last_prompt_reset=last_prompt_reset,
        pending_prompt_count=pending_prompt_count + 1,
    )


def record_usage(
    daily_prompt_count: int,
    last_prompt_reset: Optional[datetime],
    now: datetime,
    pending_prompt_count: int = 0,
    consumed: bool = True,
) -> UsageUpdate:
    """
    Counter state after an admitted prompt has been answered.

    Releases the prompt's reservation. ``consumed=False`` (failed
    generation, PRO user) leaves the daily count where it was.
    """
    if is_reset_due(last_prompt_reset, now):
        return UsageUpdate(
            daily_prompt_count=1 if consumed else 0,
            last_prompt_reset=start_of_utc_day(now),
            pending_prompt_count=0,
        )

    return UsageUpdate(
        daily_prompt_count=daily_prompt_count + 1 if consumed else daily_prompt_count,
        last_prompt_reset=last_prompt_reset,
        pending_prompt_count=max(pending_prompt_count - 1, 0),
    )
