"""
Background tracker: the host-invoked callback for fixes delivered while the
app is suspended.

The callback runs in an invocation context that shares nothing in memory with
the foreground controller. It talks to the recording only through the
SessionStore: it reads the session flags, filters the batch against the last
persisted point, and appends whatever passes. The foreground process picks
those points up on its next reconciliation.
"""
import logging
from typing import Iterable, Optional

from strive.tracking.errors import ProviderUnavailable
from strive.tracking.fix_filter import FixFilter
from strive.tracking.models import GPSFix
from strive.tracking.provider import LocationProvider, WatchOptions

logger = logging.getLogger(__name__)


async def handle_background_locations(
    store,
    fixes: Iterable[GPSFix],
    *,
    fix_filter: FixFilter,
    error: Optional[BaseException] = None,
) -> int:
    """
    Apply one batch of background fixes to the stored session.

    Args:
        store: SessionStore opened by the background context.
        fixes: batch delivered by the host, in delivery order.
        fix_filter: the same filter the foreground tracker uses.
        error: delivery error reported by the host instead of a batch.

    Returns:
        Number of fixes appended (0 when the session is paused, inactive or
        missing, or when the host reported an error).
    """
    if error is not None:
        logger.error("Background location error: %s", error)
        return 0

    record = await store.read_session()
    if record is None or not record.is_active or record.is_paused:
        return 0

    previous = await store.last_point()
    accepted = []
    for fix in fixes:
        if fix_filter.accept(previous, fix):
            accepted.append(fix)
            previous = fix

    if not accepted:
        return 0
    total = await store.append_points(accepted)
    logger.info("Background: added %d points. Total: %d", len(accepted), total)
    return len(accepted)


class BackgroundTracker:
    """Toggles host-level background delivery for the current session."""

    def __init__(
        self,
        provider: LocationProvider,
        store,
        fix_filter: FixFilter,
        options: WatchOptions,
    ):
        self.provider = provider
        self.store = store
        self.fix_filter = fix_filter
        self.options = options
        self.enabled = False

    async def enable(self) -> None:
        """Register background delivery. The session record must already be active."""
        try:
            await self.provider.start_background_updates(self.options)
        except Exception as exc:
            raise ProviderUnavailable(
                f"could not start background updates: {exc}"
            ) from exc
        self.enabled = True
        logger.debug("Background delivery enabled")

    async def disable(self) -> None:
        """Stop delivery and persist is_active=False before returning."""
        if self.enabled:
            try:
                await self.provider.stop_background_updates()
            except Exception as exc:
                raise ProviderUnavailable(
                    f"could not stop background updates: {exc}"
                ) from exc
            self.enabled = False
        await self.store.set_active(False)
        logger.debug("Background delivery disabled")

    async def handle(
        self, fixes: Iterable[GPSFix], error: Optional[BaseException] = None
    ) -> int:
        return await handle_background_locations(
            self.store, fixes, fix_filter=self.fix_filter, error=error
        )
