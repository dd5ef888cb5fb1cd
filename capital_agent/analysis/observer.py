"""Observation collector: one timeout-bounded call per category per cycle."""

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple

from capital_agent.events import EventBus
from capital_agent.schemas.event import EventType
from capital_agent.schemas.observation import ObservationCategory, ObservationV1
from capital_agent.utils.helpers import Clock

logger = logging.getLogger(__name__)


class ObservationSource(Protocol):
    """External market/asset state provider."""

    def observe(self, agent_id: str, category: ObservationCategory) -> ObservationV1:
        ...


class ObservationCollector:
    """
    Collects the observation battery for an agent.

    Calls run on a shared worker pool; the whole battery shares one deadline
    of ``timeout_seconds``. A category that times out or raises becomes a
    low-significance empty observation instead of failing the cycle.
    """

    def __init__(
        self,
        source: ObservationSource,
        events: EventBus,
        timeout_seconds: float = 5.0,
        clock: Optional[Clock] = None,
        max_workers: int = 8,
    ):
        self.source = source
        self.events = events
        self.timeout_seconds = timeout_seconds
        self._clock = clock or datetime.now
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="observe"
        )

    def collect(
        self, agent_id: str, categories: Sequence[ObservationCategory]
    ) -> List[ObservationV1]:
        """
        Collect one observation per category.

        Args:
            agent_id: Agent being observed for
            categories: Observation battery

        Returns:
            Observations in battery order (empty placeholders for failures)
        """
        futures: List[Tuple[ObservationCategory, Future]] = [
            (category, self._executor.submit(self.source.observe, agent_id, category))
            for category in categories
        ]
        deadline = time.monotonic() + self.timeout_seconds

        observations: List[ObservationV1] = []
        for category, future in futures:
            remaining = max(0.0, deadline - time.monotonic())
            try:
                obs = future.result(timeout=remaining)
            except FutureTimeoutError:
                future.cancel()
                logger.warning(f"Observation '{category.value}' timed out for {agent_id}")
                self.events.emit(
                    EventType.OBSERVATION_TIMEOUT, agent_id=agent_id, category=category.value
                )
                observations.append(ObservationV1.empty(category, "timeout", self._clock()))
                continue
            except Exception as e:
                logger.warning(f"Observation '{category.value}' failed for {agent_id}: {e}")
                observations.append(ObservationV1.empty(category, f"error: {e}", self._clock()))
                continue

            if not isinstance(obs, ObservationV1) or obs.category != category:
                logger.warning(
                    f"Source returned a mismatched observation for '{category.value}'; ignoring"
                )
                obs = ObservationV1.empty(category, "mismatched category", self._clock())
            observations.append(obs)

        logger.debug(f"Collected {len(observations)} observations for {agent_id}")
        return observations

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
