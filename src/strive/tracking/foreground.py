"""
Foreground tracker: consumes the live location stream while the app is visible.

Each delivered fix is run through the FixFilter against the session's last
accepted point. Accepted fixes extend the in-memory TrackingSession (points
and running distance) and are appended to the durable SessionStore, so the
stored sequence stays the superset that reconciliation relies on. A failed
append is retried together with the next accepted fix.

stop() is synchronous: once it returns no further fix touches the session,
even if a fix was already in flight inside the stream.
"""
import asyncio
import logging
from typing import Callable, List, Optional

from strive.tracking.errors import PersistenceFailure, ProviderUnavailable, TrackingError
from strive.tracking.fix_filter import FilterDecision, FixFilter
from strive.tracking.models import GPSFix, TrackingSession
from strive.tracking.provider import LocationProvider, WatchOptions

logger = logging.getLogger(__name__)

FixCallback = Callable[[GPSFix, FilterDecision], None]
ErrorCallback = Callable[[TrackingError], None]


class ForegroundTracker:
    """Owns one location subscription at a time."""

    def __init__(
        self,
        provider: LocationProvider,
        store,
        fix_filter: FixFilter,
        options: WatchOptions,
        on_fix: Optional[FixCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ):
        """
        Args:
            provider: LocationProvider supplying watch().
            store: SessionStore accepted fixes are appended to.
            fix_filter: movement/accuracy filter.
            options: cadence passed to provider.watch().
            on_fix: called for every delivered fix, accepted or not
                    (drives current-location and speed display).
            on_error: called with ProviderUnavailable / PersistenceFailure
                      raised while consuming the stream.
        """
        self.provider = provider
        self.store = store
        self.fix_filter = fix_filter
        self.options = options
        self.on_fix = on_fix
        self.on_error = on_error
        self._session: Optional[TrackingSession] = None
        self._task: Optional[asyncio.Task] = None
        # Accepted fixes whose durable append failed, oldest first
        self._unsaved: List[GPSFix] = []
        self._unsaved_for: Optional[TrackingSession] = None

    @property
    def is_running(self) -> bool:
        return self._session is not None

    def start(self, session: TrackingSession) -> None:
        """Subscribe to the location stream and feed `session`. Needs a running loop."""
        self.stop()
        if session is not self._unsaved_for:
            self._unsaved = []
            self._unsaved_for = session
        self._session = session
        self._task = asyncio.get_running_loop().create_task(self._consume(session))
        logger.debug("Foreground tracking started")

    def stop(self) -> None:
        """Unsubscribe. No fix is applied after this returns."""
        was_running = self._session is not None
        self._session = None
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        if was_running:
            logger.debug("Foreground tracking stopped")

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _consume(self, session: TrackingSession) -> None:
        stream = self.provider.watch(self.options)
        try:
            async for fix in stream:
                if self._session is not session:
                    break
                await self._handle(session, fix)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.error("Location stream failed: %s", exc)
            if self._session is session:
                self._session = None
                self._task = None
            error = ProviderUnavailable(f"location stream failed: {exc}")
            error.__cause__ = exc
            self._report(error)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _handle(self, session: TrackingSession, fix: GPSFix) -> None:
        decision = self.fix_filter.evaluate(session.last_point, fix)
        if decision.accepted:
            session.points.append(fix)
            session.distance_meters += decision.distance_meters
        else:
            logger.debug(
                "Rejected fix (%s, %.1f m, accuracy=%s)",
                decision.reason,
                decision.distance_meters,
                fix.accuracy,
            )

        if self.on_fix is not None:
            self.on_fix(fix, decision)

        if decision.accepted:
            batch = self._unsaved + [fix]
            try:
                await self.store.append_points(batch)
            except PersistenceFailure as exc:
                # Retried with the next accepted fix. Points still unsaved when
                # the app is suspended are lost if the background callback
                # then makes the stored sequence the longer one.
                self._unsaved = batch
                logger.warning(
                    "Could not persist %d foreground point(s): %s", len(batch), exc
                )
                self._report(exc)
            else:
                self._unsaved = []

    def _report(self, error: TrackingError) -> None:
        if self.on_error is not None:
            self.on_error(error)
