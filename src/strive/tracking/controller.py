"""
SessionController: the recording state machine.

States: Idle → Recording ⇄ Paused → Idle. One controller instance is built by
the recording screen and lives as long as that screen; nothing here is a
module-level singleton.

Transitions and their side effects:

  start(type)   idle → recording      permissions, wipe store, write active
                                      record, enable background delivery,
                                      start foreground tracker + ticker
  pause()       recording → paused    stop tracker + ticker, persist pause time
  resume()      paused → recording    fold pause into paused_duration, persist,
                                      restart tracker + ticker
  discard()     any → idle            stop everything, wipe store
  save()        recording/paused → idle
                                      stop everything, reconcile, require two
                                      points, build ActivitySummary, post it,
                                      wipe store
  recover()     idle → recording/paused
                                      rebuild in-memory state from the store
                                      after the process was relaunched

Transitions are serialized by an asyncio.Lock. If any side effect fails the
transition is rolled back to the state it started from and the error is
raised to the caller.

Reconciliation: the SessionStore is authoritative. When it holds more points
than the in-memory cache (because the background callback appended while the
app was suspended) the cache is replaced and the distance is recomputed over
the whole sequence.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from strive.config import Settings, get_settings
from strive.tracking.background import BackgroundTracker
from strive.tracking.errors import (
    InsufficientData,
    InvalidTransition,
    PermissionDenied,
    ProviderUnavailable,
    TrackingError,
)
from strive.tracking.fix_filter import FilterDecision, FixFilter
from strive.tracking.foreground import ForegroundTracker
from strive.tracking.geo import total_distance
from strive.tracking.models import (
    ActivitySummary,
    ActivityType,
    AppState,
    GPSFix,
    Idle,
    LiveMetrics,
    Paused,
    RecorderState,
    Recording,
    SavedActivity,
    SessionRecord,
    SessionStatus,
    TrackingSession,
    average_speed_kmh,
    elapsed_seconds,
    pause_length_seconds,
)
from strive.tracking.provider import LocationProvider, PermissionStatus, WatchOptions

logger = logging.getLogger(__name__)

MIN_POINTS_TO_SAVE = 2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionController:
    """Drives one recording at a time for the screen that owns it."""

    def __init__(
        self,
        provider: LocationProvider,
        store,
        api,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        on_update: Optional[Callable[[LiveMetrics], None]] = None,
        on_error: Optional[Callable[[TrackingError], None]] = None,
    ):
        """
        Args:
            provider: LocationProvider (platform SDK, ReplayLocationProvider,
                      or a mock in tests).
            store: SessionStore shared with the background callback.
            api: activity persistence client with async create_activity().
            settings: thresholds and cadences; defaults to get_settings().
            clock: returns the current aware datetime; injectable for tests.
            on_update: receives a LiveMetrics snapshot on each tick, fix and
                       transition.
            on_error: receives errors raised asynchronously by the foreground
                      stream (ProviderUnavailable, PersistenceFailure).
        """
        self.settings = settings or get_settings()
        self.provider = provider
        self.store = store
        self.api = api
        self.clock = clock or _utcnow
        self.on_update = on_update
        self.on_error = on_error

        self.fix_filter = FixFilter.from_settings(self.settings)
        self.foreground = ForegroundTracker(
            provider,
            store,
            self.fix_filter,
            WatchOptions(
                min_interval_ms=self.settings.foreground_interval_ms,
                min_distance_m=self.settings.foreground_distance_meters,
            ),
            on_fix=self._on_fix,
            on_error=self._on_tracker_error,
        )
        self.background = BackgroundTracker(
            provider,
            store,
            self.fix_filter,
            WatchOptions(
                min_interval_ms=self.settings.background_interval_ms,
                min_distance_m=self.settings.background_distance_meters,
            ),
        )

        self._state: RecorderState = Idle()
        self._app_state = AppState.ACTIVE
        self._lock = asyncio.Lock()
        self._ticker: Optional[asyncio.Task] = None
        self._current_fix: Optional[GPSFix] = None
        self._current_speed_kmh = 0.0
        self._background_allowed = True

    # ─── Read-only views ──────────────────────────────────────────────────────

    @property
    def state(self) -> RecorderState:
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def session(self) -> Optional[TrackingSession]:
        if isinstance(self._state, (Recording, Paused)):
            return self._state.session
        return None

    @property
    def current_fix(self) -> Optional[GPSFix]:
        return self._current_fix

    def elapsed_seconds(self, now: Optional[datetime] = None) -> int:
        """
        Recording time excluding pauses.

        While paused the value is frozen at the moment the pause began.
        """
        state = self._state
        if isinstance(state, Recording):
            s = state.session
            return elapsed_seconds(s.start_time, now or self.clock(), s.paused_duration_seconds)
        if isinstance(state, Paused):
            s = state.session
            return elapsed_seconds(s.start_time, state.paused_at, s.paused_duration_seconds)
        return 0

    def metrics(self, now: Optional[datetime] = None) -> LiveMetrics:
        session = self.session
        if session is None:
            return LiveMetrics(status=SessionStatus.IDLE, current_fix=self._current_fix)
        return LiveMetrics(
            status=self.status,
            activity_type=session.activity_type,
            distance_meters=session.distance_meters,
            duration_seconds=self.elapsed_seconds(now),
            current_speed_kmh=self._current_speed_kmh,
            point_count=len(session.points),
            current_fix=self._current_fix,
        )

    # ─── Transitions ──────────────────────────────────────────────────────────

    async def locate(self) -> GPSFix:
        """Fetch one fix to seed the current-location display."""
        try:
            fix = await self.provider.get_current_fix()
        except Exception as exc:
            raise ProviderUnavailable(f"could not get current location: {exc}") from exc
        self._current_fix = fix
        self._notify()
        return fix

    async def start(self, activity_type) -> LiveMetrics:
        """
        Begin a new recording.

        Raises:
            PermissionDenied: location access refused; state stays idle.
            InvalidTransition: a recording is already in progress.
            ValueError: unknown activity type.
        """
        activity_type = ActivityType(activity_type)
        async with self._lock:
            if not isinstance(self._state, Idle):
                raise InvalidTransition(self.status.value, "start")

            self._background_allowed = await self._check_permissions()

            now = self.clock()
            session = TrackingSession(activity_type=activity_type, start_time=now)
            try:
                await self.store.clear()
                await self.store.write_session(self._record(session))
                if self._background_allowed:
                    await self.background.enable()
            except TrackingError:
                logger.error("Start failed, rolling back")
                await self._abandon()
                raise

            self._current_speed_kmh = 0.0
            self._state = Recording(session)
            if self._app_state == AppState.ACTIVE:
                self._resume_live(session)
            logger.info("Recording started (%s)", activity_type.value)

        self._notify()
        return self.metrics()

    async def pause(self) -> LiveMetrics:
        async with self._lock:
            state = self._state
            if not isinstance(state, Recording):
                raise InvalidTransition(self.status.value, "pause")

            session = state.session
            now = self.clock()
            self._suspend_live()
            try:
                await self.store.write_session(self._record(session, paused_at=now))
            except TrackingError:
                if self._app_state == AppState.ACTIVE:
                    self._resume_live(session)
                raise

            self._state = Paused(session, paused_at=now)
            logger.info("Recording paused at %ds", self.elapsed_seconds())

        self._notify()
        return self.metrics()

    async def resume(self) -> LiveMetrics:
        async with self._lock:
            state = self._state
            if not isinstance(state, Paused):
                raise InvalidTransition(self.status.value, "resume")

            session = state.session
            paused_total = session.paused_duration_seconds + pause_length_seconds(
                state.paused_at, self.clock()
            )
            record = self._record(session)
            record.paused_duration = paused_total
            await self.store.write_session(record)

            session.paused_duration_seconds = paused_total
            self._state = Recording(session)
            if self._app_state == AppState.ACTIVE:
                self._resume_live(session)
            logger.info("Recording resumed (paused %ds in total)", paused_total)

        self._notify()
        return self.metrics()

    async def discard(self) -> LiveMetrics:
        """Stop without saving. A no-op when already idle."""
        async with self._lock:
            previous = self._state
            if isinstance(previous, Idle):
                return self.metrics()

            self._suspend_live()
            try:
                await self.background.disable()
                await self.store.clear()
            except TrackingError:
                logger.error("Discard failed, restoring session")
                await self._restore(previous)
                raise

            self._reset()
            logger.info("Recording discarded")

        self._notify()
        return self.metrics()

    async def save(self) -> SavedActivity:
        """
        Stop, summarize and hand the activity to the persistence API.

        Raises:
            InsufficientData: fewer than two accepted points; still recording.
            PersistenceFailure: store or API failure; still recording, so the
                caller can retry or discard.
            InvalidTransition: nothing is being recorded.
        """
        async with self._lock:
            previous = self._state
            if not isinstance(previous, (Recording, Paused)):
                raise InvalidTransition(self.status.value, "save")

            session = previous.session
            self._suspend_live()
            try:
                await self.background.disable()
                await self._reconcile_session(session)
                if len(session.points) < MIN_POINTS_TO_SAVE:
                    raise InsufficientData(len(session.points), MIN_POINTS_TO_SAVE)
                summary = self._summarize(session, self.clock())
                activity_id = await self.api.create_activity(summary)
            except TrackingError as exc:
                logger.warning("Save aborted: %s", exc)
                await self._restore(previous)
                raise

            try:
                await self.store.clear()
            except TrackingError:
                # Record is already inactive, so recover() will not resurrect it
                logger.exception("Activity %s saved but session store not cleared", activity_id)

            self._reset()
            logger.info(
                "Saved activity %s: %.0f m in %ds",
                activity_id,
                summary.distance_meters,
                summary.duration_seconds,
            )

        self._notify()
        return SavedActivity(activity_id=activity_id, summary=summary)

    async def recover(self) -> LiveMetrics:
        """
        Rebuild state from the store after the app was relaunched.

        Stays idle when the store holds no active session.
        """
        async with self._lock:
            if not isinstance(self._state, Idle):
                raise InvalidTransition(self.status.value, "recover")

            record = await self.store.read_session()
            if record is None or not record.is_active or record.start_time is None:
                return self.metrics()

            points = await self.store.read_points()
            session = TrackingSession(
                activity_type=record.activity_type,
                start_time=record.start_time,
                paused_duration_seconds=record.paused_duration,
                points=points,
                distance_meters=total_distance(points),
            )
            # Host-level delivery survives the relaunch
            self.background.enabled = True
            if points:
                self._current_fix = points[-1]

            if record.is_paused:
                self._state = Paused(session, paused_at=record.last_pause_time or self.clock())
            else:
                self._state = Recording(session)
                if self._app_state == AppState.ACTIVE:
                    self._resume_live(session)
            logger.info(
                "Recovered %s session with %d points", self.status.value, len(points)
            )

        self._notify()
        return self.metrics()

    async def reconcile(self) -> LiveMetrics:
        """Pull in points the background callback stored while suspended."""
        async with self._lock:
            session = self.session
            if session is not None:
                await self._reconcile_session(session)
        self._notify()
        return self.metrics()

    async def handle_app_state(self, app_state) -> LiveMetrics:
        """
        React to foreground/background transitions from the lifecycle notifier.

        Leaving the foreground hands tracking over to background delivery;
        coming back reconciles and, if recording, restarts the foreground
        tracker.
        """
        app_state = AppState(app_state)
        previous, self._app_state = self._app_state, app_state

        if previous != AppState.ACTIVE and app_state == AppState.ACTIVE:
            async with self._lock:
                session = self.session
                if session is not None:
                    try:
                        await self._reconcile_session(session)
                    finally:
                        # The app may have been backgrounded again while reconciling
                        if (
                            isinstance(self._state, Recording)
                            and self._app_state == AppState.ACTIVE
                        ):
                            self._resume_live(session)
        elif previous == AppState.ACTIVE and app_state != AppState.ACTIVE:
            self._suspend_live()

        self._notify()
        return self.metrics()

    def close(self) -> None:
        """Stop the tracker and ticker when the owning screen goes away."""
        self._suspend_live()

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _check_permissions(self) -> bool:
        """Return whether background delivery may be enabled."""
        try:
            foreground = await self.provider.request_foreground_permission()
        except Exception as exc:
            raise ProviderUnavailable(f"permission request failed: {exc}") from exc
        if foreground != PermissionStatus.GRANTED:
            logger.error("Foreground location permission denied")
            raise PermissionDenied("foreground")

        try:
            background = await self.provider.request_background_permission()
        except Exception as exc:
            raise ProviderUnavailable(f"permission request failed: {exc}") from exc
        if background != PermissionStatus.GRANTED:
            if self.settings.require_background_permission:
                logger.error("Background location permission denied")
                raise PermissionDenied("background")
            logger.warning(
                "Background location permission denied - tracking may stop "
                "when app is backgrounded"
            )
            return False
        return True

    async def _reconcile_session(self, session: TrackingSession) -> int:
        points = await self.store.read_points()
        if len(points) > len(session.points):
            logger.info(
                "Reconciled %d stored points (had %d in memory)",
                len(points),
                len(session.points),
            )
            session.points = points
            session.distance_meters = total_distance(points)
            self._current_fix = points[-1]
        return len(session.points)

    def _summarize(self, session: TrackingSession, end_time: datetime) -> ActivitySummary:
        duration = self.elapsed_seconds(end_time)
        return ActivitySummary(
            activity_type=session.activity_type,
            points=list(session.points),
            distance_meters=session.distance_meters,
            duration_seconds=duration,
            avg_speed_kmh=average_speed_kmh(session.distance_meters, duration),
            start_time=session.start_time,
            end_time=end_time,
        )

    def _record(
        self, session: TrackingSession, paused_at: Optional[datetime] = None
    ) -> SessionRecord:
        return SessionRecord(
            is_active=True,
            is_paused=paused_at is not None,
            activity_type=session.activity_type,
            start_time=session.start_time,
            paused_duration=session.paused_duration_seconds,
            last_pause_time=paused_at,
        )

    async def _restore(self, previous: RecorderState) -> None:
        """Put a recording/paused session back after a failed stop."""
        session = previous.session
        paused_at = previous.paused_at if isinstance(previous, Paused) else None
        try:
            await self.store.write_session(self._record(session, paused_at=paused_at))
        except TrackingError:
            logger.exception("Could not restore session record after failed stop")
        if self._background_allowed and not self.background.enabled:
            try:
                await self.background.enable()
            except TrackingError:
                logger.exception("Could not re-enable background delivery after failed stop")
        self._state = previous
        if isinstance(previous, Recording) and self._app_state == AppState.ACTIVE:
            self._resume_live(session)

    async def _abandon(self) -> None:
        """Undo a partially applied start."""
        self._suspend_live()
        try:
            await self.background.disable()
            await self.store.clear()
        except TrackingError:
            logger.exception("Cleanup after failed start did not complete")
        self._reset()

    def _reset(self) -> None:
        self._state = Idle()
        self._current_speed_kmh = 0.0

    def _resume_live(self, session: TrackingSession) -> None:
        self.foreground.start(session)
        self._stop_ticker()
        self._ticker = asyncio.get_running_loop().create_task(self._tick())

    def _suspend_live(self) -> None:
        self.foreground.stop()
        self._stop_ticker()

    def _stop_ticker(self) -> None:
        ticker, self._ticker = self._ticker, None
        if ticker is not None and not ticker.done():
            ticker.cancel()

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.settings.tick_seconds)
            self._notify()

    def _on_fix(self, fix: GPSFix, decision: FilterDecision) -> None:
        self._current_fix = fix
        if fix.speed is not None and fix.speed >= 0:
            self._current_speed_kmh = fix.speed * 3.6
        self._notify()

    def _on_tracker_error(self, error: TrackingError) -> None:
        logger.error("Foreground tracker error: %s", error)
        if self.on_error is not None:
            self.on_error(error)

    def _notify(self) -> None:
        if self.on_update is not None:
            self.on_update(self.metrics())
