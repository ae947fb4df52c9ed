"""Cooperative camera flights along great-circle arcs.

Each flight is an asyncio task keyed by a target name. Starting a flight on
a target that is already animating cancels the previous one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from memoryglobe.engines.base import FlyToOptions
from memoryglobe.geodesy import interpolate_great_circle_path
from memoryglobe.memory.models import GeoPosition
from memoryglobe.sync import MarkerSyncController

logger = logging.getLogger(__name__)

CAMERA = "camera"


class FlightAnimator:
    """Drives ``fly_to`` through the points of a raised great-circle arc."""

    def __init__(
        self,
        controller: MarkerSyncController,
        *,
        steps: int = 30,
        step_interval: float = 0.03,
        base_altitude_km: float = 12000.0,
        on_step: Callable[[GeoPosition], None] | None = None,
    ) -> None:
        self.controller = controller
        self.on_step = on_step
        self.steps = steps
        self.step_interval = step_interval
        self.base_altitude_km = base_altitude_km
        self._tasks: dict[str, asyncio.Task] = {}

    def fly(self, start: GeoPosition, end: GeoPosition, *, target: str = CAMERA) -> asyncio.Task:
        """Start a flight, cancelling any flight already running on ``target``."""
        self.cancel(target)
        task = asyncio.get_running_loop().create_task(self._run(start, end))
        self._tasks[target] = task
        task.add_done_callback(lambda t, key=target: self._forget(key, t))
        return task

    def cancel(self, target: str = CAMERA) -> bool:
        task = self._tasks.pop(target, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.debug("Cancelled flight on %s", target)
        return True

    async def stop(self) -> None:
        """Cancel every running flight and wait for them to unwind."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def is_flying(self, target: str = CAMERA) -> bool:
        task = self._tasks.get(target)
        return task is not None and not task.done()

    def _forget(self, target: str, task: asyncio.Task) -> None:
        if self._tasks.get(target) is task:
            del self._tasks[target]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Flight on %s failed: %s", target, task.exception())

    async def _run(self, start: GeoPosition, end: GeoPosition) -> None:
        path = interpolate_great_circle_path(
            start.latitude, start.longitude, end.latitude, end.longitude, self.steps
        )
        for i, point in enumerate(path):
            self.controller.fly_to(
                point.latitude,
                point.longitude,
                FlyToOptions(altitude_km=self.base_altitude_km + point.height_km),
            )
            if self.on_step:
                self.on_step(GeoPosition(point.latitude, point.longitude))
            if i < len(path) - 1:
                await asyncio.sleep(self.step_interval)
