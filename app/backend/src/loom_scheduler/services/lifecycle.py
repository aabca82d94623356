"""Window lifecycle: generation, resizing and the daily roll."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from loom_scheduler.core.config import Settings, get_settings
from loom_scheduler.repositories import loom as loom_repo
from loom_scheduler.services.archival import ArchiveResult, weave_to_history
from loom_scheduler.services.errors import WindowSizeError
from loom_scheduler.services.occurrences import WindowRange, window_for
from loom_scheduler.services.routing import RoutingProvider
from loom_scheduler.services.weaver import ProjectionResult, project_window

logger = logging.getLogger(__name__)

WINDOW_WEEKS_KEY = "window_weeks"
WINDOW_START_KEY = "window_start"


@dataclass
class WindowState:
    weeks: int
    window: WindowRange


@dataclass
class WindowChange:
    state: WindowState
    previous_weeks: int | None = None
    projected: WindowRange | None = None
    projection: ProjectionResult | None = None
    archive: ArchiveResult | None = None
    instances_trimmed: int = 0
    overrides_retained: int = 0


def validate_window_size(weeks: object, settings: Settings | None = None) -> int:
    settings = settings or get_settings()
    if isinstance(weeks, bool) or not isinstance(weeks, int):
        raise WindowSizeError(weeks, settings.min_window_weeks, settings.max_window_weeks)
    if not settings.min_window_weeks <= weeks <= settings.max_window_weeks:
        raise WindowSizeError(weeks, settings.min_window_weeks, settings.max_window_weeks)
    return weeks


async def get_window_state(
    session: AsyncSession, *, today: date | None = None, settings: Settings | None = None
) -> WindowState:
    settings = settings or get_settings()
    today = today or date.today()
    stored_weeks = await loom_repo.get_setting(session, WINDOW_WEEKS_KEY)
    stored_start = await loom_repo.get_setting(session, WINDOW_START_KEY)
    weeks = int(stored_weeks) if stored_weeks else settings.default_window_weeks
    start = date.fromisoformat(stored_start) if stored_start else today
    return WindowState(weeks=weeks, window=window_for(start, weeks))


async def _store_window(session: AsyncSession, weeks: int, start: date) -> WindowState:
    await loom_repo.set_setting(session, WINDOW_WEEKS_KEY, str(weeks))
    await loom_repo.set_setting(session, WINDOW_START_KEY, start.isoformat())
    return WindowState(weeks=weeks, window=window_for(start, weeks))


class WindowManager:
    def __init__(
        self,
        session: AsyncSession,
        *,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        routing: RoutingProvider | None = None,
        today: date | None = None,
        now: datetime | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.rng = rng
        self.routing = routing
        self.today = today or date.today()
        self.now = now or datetime.utcnow()

    async def _project(self, window: WindowRange, *, full_rebuild: bool = False) -> ProjectionResult:
        return await project_window(
            self.session,
            window,
            full_rebuild=full_rebuild,
            settings=self.settings,
            rng=self.rng,
            routing=self.routing,
            now=self.now,
        )

    async def generate(self, weeks: int | None = None, *, full_rebuild: bool = False) -> WindowChange:
        """Store the window size and project the whole window starting today."""
        current = await get_window_state(self.session, today=self.today, settings=self.settings)
        size = validate_window_size(weeks if weeks is not None else current.weeks, self.settings)
        state = await _store_window(self.session, size, self.today)
        projection = await self._project(state.window, full_rebuild=full_rebuild)
        logger.info("Generated %s-week window from %s", size, self.today.isoformat())
        return WindowChange(
            state=state, previous_weeks=current.weeks, projected=state.window, projection=projection
        )

    async def resize(self, weeks: int) -> WindowChange:
        """Grow by projecting only the newly included dates, or shrink by trimming the tail."""
        size = validate_window_size(weeks, self.settings)
        current = await get_window_state(self.session, today=self.today, settings=self.settings)
        state = await _store_window(self.session, size, current.window.start)
        change = WindowChange(state=state, previous_weeks=current.weeks)

        if size > current.weeks:
            added = WindowRange(start=current.window.end + timedelta(days=1), end=state.window.end)
            change.projected = added
            change.projection = await self._project(added)
        elif size < current.weeks:
            change.instances_trimmed, change.overrides_retained = await loom_repo.delete_unpinned_instances(
                self.session, start=state.window.end + timedelta(days=1), end=current.window.end
            )
        logger.info(
            "Resized window from %s to %s weeks (trimmed=%s)", current.weeks, size, change.instances_trimmed
        )
        return change

    async def roll(self) -> WindowChange:
        """Archive everything before today and extend the window to keep its size."""
        current = await get_window_state(self.session, today=self.today, settings=self.settings)
        archive = await weave_to_history(self.session, self.today, now=self.now)
        state = await _store_window(self.session, current.weeks, self.today)
        change = WindowChange(state=state, previous_weeks=current.weeks, archive=archive)

        first_new = max(current.window.end + timedelta(days=1), self.today)
        added = WindowRange(start=first_new, end=state.window.end)
        if not added.is_empty:
            change.projected = added
            change.projection = await self._project(added)
        logger.info(
            "Rolled window to %s; archived %s instances",
            self.today.isoformat(),
            archive.stats.instances_archived,
        )
        return change


async def generate_window(session: AsyncSession, weeks: int | None = None, **kwargs) -> WindowChange:
    full_rebuild = kwargs.pop("full_rebuild", False)
    return await WindowManager(session, **kwargs).generate(weeks, full_rebuild=full_rebuild)


async def resize_window(session: AsyncSession, weeks: int, **kwargs) -> WindowChange:
    return await WindowManager(session, **kwargs).resize(weeks)


async def roll_now(session: AsyncSession, **kwargs) -> WindowChange:
    return await WindowManager(session, **kwargs).roll()
