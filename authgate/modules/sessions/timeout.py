"""
Session timeout policy.

A session is ACTIVE until it has been idle for longer than
``timeout - warning_window`` (WARNING) and EXPIRED once idle for longer than
``timeout`` or older than ``max_duration``. A missing timestamp counts as
expired. Timestamps are ISO-8601 strings kept under the storage keys below,
so the same evaluation runs over a browser-like store or over request cookies.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from authgate.config import settings
from authgate.modules.auth import messages
from authgate.modules.sessions.store import SessionStore

logger = logging.getLogger(__name__)

LAST_ACTIVITY_KEY = "lastActivity"
SESSION_START_KEY = "sessionStart"
SESSION_WARNING_SHOWN_KEY = "sessionWarningShown"
FORCE_LOGOUT_ON_START_KEY = "forceLogoutOnNextStart"
STRICT_SESSION_MODE_KEY = "strictSessionMode"

AUTH_PAGE_PREFIXES = ("/auth", "/login")

Clock = Callable[[], datetime]
ForceLogout = Callable[[str], Union[Awaitable[Any], Any]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_auth_page(path: str) -> bool:
    return path.startswith(AUTH_PAGE_PREFIXES)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring malformed session timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SessionState(str, Enum):
    ACTIVE = "active"
    WARNING = "warning"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionPolicy:
    timeout: timedelta
    warning_window: timedelta
    check_interval: timedelta
    max_duration: timedelta

    @classmethod
    def from_settings(cls, strict: bool = False) -> "SessionPolicy":
        if strict:
            timeout = settings.strict_session_timeout_seconds
            warning = settings.strict_session_warning_seconds
        else:
            timeout = settings.session_timeout_seconds
            warning = settings.session_warning_seconds
        return cls(
            timeout=timedelta(seconds=timeout),
            warning_window=timedelta(seconds=warning),
            check_interval=timedelta(seconds=settings.session_check_interval_seconds),
            max_duration=timedelta(seconds=settings.max_session_duration_seconds),
        )

    @classmethod
    def for_store(cls, store: SessionStore) -> "SessionPolicy":
        """Strict policy when the strictSessionMode flag is set."""
        return cls.from_settings(strict=store.get(STRICT_SESSION_MODE_KEY) == "true")


@dataclass
class SessionStatus:
    state: SessionState
    reason: Optional[str]
    inactive_seconds: Optional[float]
    remaining_seconds: Optional[float]
    session_age_seconds: Optional[float]

    @property
    def warning(self) -> bool:
        return self.state is SessionState.WARNING


def evaluate(
    last_activity: Optional[datetime],
    session_start: Optional[datetime],
    policy: SessionPolicy,
    now: Optional[datetime] = None,
) -> SessionStatus:
    now = now or utc_now()
    inactive = now - last_activity if last_activity else None
    age = now - session_start if session_start else None
    inactive_seconds = inactive.total_seconds() if inactive is not None else None
    age_seconds = age.total_seconds() if age is not None else None

    if inactive is None or inactive > policy.timeout:
        return SessionStatus(SessionState.EXPIRED, messages.INACTIVITY_TIMEOUT, inactive_seconds, 0.0, age_seconds)
    if age is None or age > policy.max_duration:
        return SessionStatus(SessionState.EXPIRED, messages.MAX_DURATION_EXCEEDED, inactive_seconds, 0.0, age_seconds)

    remaining = min(policy.timeout - inactive, policy.max_duration - age).total_seconds()
    if inactive > policy.timeout - policy.warning_window:
        return SessionStatus(SessionState.WARNING, None, inactive_seconds, remaining, age_seconds)
    return SessionStatus(SessionState.ACTIVE, None, inactive_seconds, remaining, age_seconds)


def evaluate_store(
    store: SessionStore,
    now: Optional[datetime] = None,
    policy: Optional[SessionPolicy] = None,
) -> SessionStatus:
    return evaluate(
        parse_timestamp(store.get(LAST_ACTIVITY_KEY)),
        parse_timestamp(store.get(SESSION_START_KEY)),
        policy or SessionPolicy.for_store(store),
        now,
    )


def is_session_expired_by_inactivity(
    store: SessionStore,
    now: Optional[datetime] = None,
    policy: Optional[SessionPolicy] = None,
) -> bool:
    last_activity = parse_timestamp(store.get(LAST_ACTIVITY_KEY))
    if last_activity is None:
        return True
    policy = policy or SessionPolicy.for_store(store)
    return (now or utc_now()) - last_activity > policy.timeout


def is_session_expired_by_duration(
    store: SessionStore,
    now: Optional[datetime] = None,
    policy: Optional[SessionPolicy] = None,
) -> bool:
    session_start = parse_timestamp(store.get(SESSION_START_KEY))
    if session_start is None:
        return True
    policy = policy or SessionPolicy.for_store(store)
    return (now or utc_now()) - session_start > policy.max_duration


def should_show_warning(
    store: SessionStore,
    now: Optional[datetime] = None,
    policy: Optional[SessionPolicy] = None,
) -> bool:
    """True once per session, inside the warning window and before expiry."""
    last_activity = parse_timestamp(store.get(LAST_ACTIVITY_KEY))
    if last_activity is None or store.get(SESSION_WARNING_SHOWN_KEY):
        return False
    policy = policy or SessionPolicy.for_store(store)
    until_expiry = policy.timeout - ((now or utc_now()) - last_activity)
    return timedelta(0) < until_expiry <= policy.warning_window


class ActivityTracker:
    """Writes session tracking timestamps. Storage failures are logged, never raised."""

    def __init__(self, store: SessionStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    def _write(self, key: str, value: Optional[str]) -> None:
        try:
            if value is None:
                self.store.remove(key)
            else:
                self.store.set(key, value)
        except Exception as e:
            logger.warning("Failed to update session tracking key %s: %s", key, e)

    def start(self) -> None:
        stamp = self.clock().isoformat()
        self._write(SESSION_START_KEY, stamp)
        self._write(LAST_ACTIVITY_KEY, stamp)
        self._write(SESSION_WARNING_SHOWN_KEY, None)

    def record_activity(self) -> None:
        self._write(LAST_ACTIVITY_KEY, self.clock().isoformat())

    def mark_warning_shown(self) -> None:
        self._write(SESSION_WARNING_SHOWN_KEY, "true")

    def clear(self) -> None:
        for key in (LAST_ACTIVITY_KEY, SESSION_START_KEY, SESSION_WARNING_SHOWN_KEY):
            self._write(key, None)

    def enable_force_logout_on_start(self) -> None:
        self._write(FORCE_LOGOUT_ON_START_KEY, "true")
        logger.info("Force logout on next start enabled")

    def disable_force_logout_on_start(self) -> None:
        self._write(FORCE_LOGOUT_ON_START_KEY, None)

    def enable_strict_mode(self) -> None:
        """Shorter timeouts, and a fresh login on the next start."""
        self._write(STRICT_SESSION_MODE_KEY, "true")
        self.enable_force_logout_on_start()
        logger.info("Strict session mode enabled")

    def disable_strict_mode(self) -> None:
        self._write(STRICT_SESSION_MODE_KEY, None)
        self.disable_force_logout_on_start()


async def _call(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class SessionTimeoutMonitor:
    """
    Periodic session check for one client session.

    Each tick is skipped on auth pages; otherwise the policy is evaluated, a
    one-shot warning callback fires inside the warning window, and an expired
    session ends with ``force_logout("session_timeout")`` and stops the loop.
    """

    def __init__(
        self,
        store: SessionStore,
        force_logout: ForceLogout,
        on_warning: Optional[Callable[[float], Any]] = None,
        current_path: Callable[[], str] = lambda: "/",
        policy: Optional[SessionPolicy] = None,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.force_logout = force_logout
        self.on_warning = on_warning
        self.current_path = current_path
        self.policy = policy
        self.clock = clock
        self.tracker = ActivityTracker(store, clock)
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    def _policy(self) -> SessionPolicy:
        return self.policy or SessionPolicy.for_store(self.store)

    async def check(self) -> Optional[SessionState]:
        """Run one tick. Returns None when skipped."""
        if is_auth_page(self.current_path()):
            return None
        policy = self._policy()
        now = self.clock()
        status = evaluate_store(self.store, now, policy)
        if status.state is SessionState.EXPIRED:
            logger.info("Session expired (%s), logging out", status.reason)
            self._stopped = True
            self.tracker.clear()
            await _call(self.force_logout, messages.SESSION_TIMEOUT)
            return status.state
        if should_show_warning(self.store, now, policy):
            self.tracker.mark_warning_shown()
            await _call(self.on_warning, status.remaining_seconds)
        return status.state

    async def run(self) -> None:
        interval = self._policy().check_interval.total_seconds()
        while not self._stopped:
            await asyncio.sleep(interval)
            if self._stopped:
                break
            try:
                await self.check()
            except Exception as e:
                logger.error("Session timeout check failed: %s", e)

    def start(self) -> asyncio.Task:
        self._stopped = False
        self._task = asyncio.create_task(self.run())
        return self._task

    def stop(self) -> None:
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def record_activity(self) -> None:
        self.tracker.record_activity()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()


async def handle_force_logout_on_start(
    store: SessionStore,
    force_logout: ForceLogout,
    current_path: str = "/",
) -> bool:
    """Honour the one-shot forceLogoutOnNextStart flag. Returns True when it was set."""
    if store.get(FORCE_LOGOUT_ON_START_KEY) != "true":
        return False
    # Cleared before logging out so a failed logout cannot loop.
    ActivityTracker(store).disable_force_logout_on_start()
    if is_auth_page(current_path):
        logger.info("Already on auth page, skipping force logout redirect")
        return True
    logger.info("Triggering force logout on start")
    await _call(force_logout, messages.FORCE_LOGOUT_ON_START)
    return True


async def validate_on_start(
    store: SessionStore,
    force_logout: ForceLogout,
    now: Optional[datetime] = None,
    policy: Optional[SessionPolicy] = None,
) -> bool:
    """Check a restored session before use; call only when a session exists."""
    status = evaluate_store(store, now, policy)
    if status.state is not SessionState.EXPIRED:
        return True
    logger.info("Stored session invalid on start (%s)", status.reason)
    ActivityTracker(store).clear()
    await _call(force_logout, messages.INVALID_SESSION_ON_START)
    return False
