"""
Periodic evacuation status refresh.

Each cycle resolves the face lists with time attendance enabled and, list by
list, fetches detections in the lookback window and the roster, picks the
latest detection per person and writes the reconciled rows. A failing list
is logged and skipped; the next cycle is the retry. Only one cycle runs at a
time; a trigger that arrives while a cycle is running is dropped.
"""

from __future__ import annotations

import datetime
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..core.config import Settings, settings
from ..core.errors import log_exception
from ..integrations.face_api import FaceApiClient, build_face_api_client
from ..schemas.evacuation import StatusRecord
from .attendance_config import AttendanceConfig, resolve_enabled_lists
from .detection_window import fetch_detections_in_window
from .evacuation_reconciler import reconcile_list
from .evacuation_store import EvacuationStatusStore, now_ms
from .latest_detection import select_latest_detections


class SingleFlightGuard:
    """Non-blocking mutual exclusion for refresh cycles."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def running(self) -> bool:
        return self._lock.locked()


@dataclass
class ListRefreshResult:
    list_id: int
    name: Optional[str] = None
    written: int = 0
    preserved: int = 0
    stale: int = 0
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


@dataclass
class RefreshReport:
    started_at_ms: int
    finished_at_ms: Optional[int] = None
    skipped: bool = False
    error: Optional[str] = None
    lists: List[ListRefreshResult] = field(default_factory=list)

    @property
    def failed_lists(self) -> List[int]:
        return [result.list_id for result in self.lists if result.error]


class EvacuationRefresher:
    def __init__(
        self,
        client: FaceApiClient,
        store: EvacuationStatusStore,
        *,
        guard: Optional[SingleFlightGuard] = None,
        lookback_days: int = 14,
        face_list_limit: int = 100,
        detection_page_limit: int = 500,
        list_item_page_limit: int = 1000,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.logger = logging.getLogger("EvacuationRefresh")
        self.client = client
        self.store = store
        self.guard = guard or SingleFlightGuard()
        self.lookback_days = lookback_days
        self.face_list_limit = face_list_limit
        self.detection_page_limit = detection_page_limit
        self.list_item_page_limit = list_item_page_limit
        self.clock = clock
        self.last_report: Optional[RefreshReport] = None

    @property
    def running(self) -> bool:
        return self.guard.running

    def resolve_window(self, end_ms: int) -> Tuple[Optional[int], int]:
        if self.lookback_days <= 0:
            return None, end_ms
        lookback_ms = int(datetime.timedelta(days=self.lookback_days).total_seconds() * 1000)
        return end_ms - lookback_ms, end_ms

    def refresh(self) -> RefreshReport:
        """Run one cycle, or return a skipped report if one is already running."""
        started = self.clock()
        if not self.guard.try_acquire():
            self.logger.debug("Evacuation refresh already running; trigger ignored")
            return RefreshReport(started_at_ms=started, finished_at_ms=started, skipped=True)
        try:
            report = self._run_cycle(started)
            self.last_report = report
            return report
        finally:
            self.guard.release()

    def _run_cycle(self, started: int) -> RefreshReport:
        report = RefreshReport(started_at_ms=started)
        try:
            response = self.client.list_face_lists(self.face_list_limit)
        except Exception as exc:
            self.logger.warning("Face API unavailable, skipping evacuation refresh: %s", exc)
            report.error = str(exc)
            report.finished_at_ms = self.clock()
            return report

        configs = resolve_enabled_lists(response.data)
        if not configs:
            self.logger.info("No lists with attendance enabled; skipping refresh")
            report.finished_at_ms = self.clock()
            return report

        start_ms, end_ms = self.resolve_window(started)
        self.logger.info("Evacuation refresh started lists=%s", len(configs))
        for config in configs:
            try:
                result = self.refresh_list(config, start_ms, end_ms)
            except Exception as exc:
                log_exception(self.logger, "Failed to refresh list", extra={"list_id": config.list_id}, exc=exc)
                result = ListRefreshResult(list_id=config.list_id, name=config.name, error=str(exc))
            report.lists.append(result)
        report.finished_at_ms = self.clock()
        self.logger.info(
            "Evacuation refresh finished lists=%s failed=%s duration_ms=%s",
            len(report.lists),
            len(report.failed_lists),
            report.finished_at_ms - started,
        )
        return report

    def refresh_list(
        self,
        config: AttendanceConfig,
        start_ms: Optional[int],
        end_ms: Optional[int],
    ) -> ListRefreshResult:
        result = ListRefreshResult(list_id=config.list_id, name=config.name)
        detections = fetch_detections_in_window(
            self.client,
            config.list_id,
            config.all_stream_ids(),
            start_ms,
            end_ms,
            self.detection_page_limit,
        )
        roster = self.client.fetch_all_list_items(config.list_id, self.list_item_page_limit)
        if not roster:
            self.logger.info("List %s has an empty roster; nothing to reconcile", config.list_id)
            result.skipped_reason = "empty_roster"
            return result
        roster_ids = [item.id for item in roster]
        latest = select_latest_detections(detections, roster_ids, list_id=config.list_id)

        def _compute(existing: Dict[int, StatusRecord]) -> List[StatusRecord]:
            outcome = reconcile_list(config, roster_ids, latest, existing)
            result.preserved = len(outcome.preserved)
            result.stale = len(outcome.stale)
            return outcome.records

        records = self.store.reconcile_list(config.list_id, _compute)
        result.written = len(records)
        self.logger.debug(
            "List %s reconciled detections=%s written=%s preserved=%s stale=%s",
            config.list_id,
            len(detections),
            result.written,
            result.preserved,
            result.stale,
        )
        return result


class RefreshScheduler:
    """Runs refresh cycles with a fixed delay between them."""

    def __init__(self, refresher: EvacuationRefresher, interval_sec: float, *, run_on_start: bool = True) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)
        self.refresher = refresher
        self.interval_sec = interval_sec
        self.run_on_start = run_on_start
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the scheduler thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run_forever, name="evacuation-refresh", daemon=True)
        self._thread.start()
        self.logger.info("Evacuation scheduler started with interval=%ss", self.interval_sec)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    @property
    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_forever(self) -> None:
        if not self.run_on_start:
            self._stop_event.wait(self.interval_sec)
        while not self._stop_event.is_set():
            try:
                self.refresher.refresh()
            except Exception as exc:
                self.logger.exception("Evacuation refresh cycle failed: %s", exc)
            self._stop_event.wait(self.interval_sec)
        self.logger.info("Evacuation scheduler stopped")


def build_refresher(
    cfg: Settings = settings,
    *,
    client: Optional[FaceApiClient] = None,
    store: Optional[EvacuationStatusStore] = None,
) -> EvacuationRefresher:
    return EvacuationRefresher(
        client or build_face_api_client(),
        store or EvacuationStatusStore(),
        lookback_days=cfg.evacuation_lookback_days,
        face_list_limit=cfg.evacuation_face_list_limit,
        detection_page_limit=cfg.evacuation_detection_page_limit,
        list_item_page_limit=cfg.evacuation_list_item_page_limit,
    )


def refresh_interval_sec(cfg: Settings = settings) -> float:
    return max(1, cfg.evacuation_refresh_minutes) * 60.0
