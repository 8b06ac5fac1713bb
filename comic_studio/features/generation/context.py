# comic_studio/features/generation/context.py
from __future__ import annotations

import uuid
from collections import OrderedDict
from typing import Callable, Dict, List, Optional

from comic_studio.config import config
from comic_studio.lib.retry import CancelToken
from comic_studio.logger import get_logger, run_logger
from comic_studio.schemas import (
    GenerationProgress,
    PanelRecord,
    PanelSpec,
    PanelStatus,
    RunSnapshot,
    RunState,
    StoryOptions,
)

log = get_logger(__name__)

Subscriber = Callable[[RunSnapshot], None]


class RunContext:
    """
    Mutable state of one generation run: records, progress, messages, cancel token.
    Owned by the orchestrator; callers read it through snapshot() or subscribe().
    """

    def __init__(self, options: StoryOptions, run_id: Optional[str] = None):
        self.run_id = run_id or uuid.uuid4().hex
        self.log = run_logger(log, self.run_id)
        self.options = options
        self.state = RunState.IDLE
        self.progress: Optional[GenerationProgress] = None
        self.records: List[PanelRecord] = []
        self.messages: List[str] = []
        self.cancel_token = CancelToken()
        self._subscribers: List[Subscriber] = []

    # -------- subscription --------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return _unsubscribe

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            run_id=self.run_id,
            state=self.state,
            progress=self.progress.model_copy() if self.progress else None,
            panels=[r.model_copy(deep=True) for r in self.records],
            messages=list(self.messages),
        )

    def publish(self) -> None:
        if not self._subscribers:
            return
        snap = self.snapshot()
        for cb in list(self._subscribers):
            try:
                cb(snap)
            except Exception:
                # a broken observer must not stop the run
                self.log.exception("run subscriber failed")

    # -------- transitions --------

    def reset(self) -> None:
        self.state = RunState.IDLE
        self.progress = None
        self.records = []
        self.messages = []
        self.publish()

    def set_state(self, state: RunState) -> None:
        self.log.debug(f"{self.state.value} -> {state.value}")
        self.state = state
        self.publish()

    def set_progress(
        self,
        step: str,
        percentage: float,
        *,
        current_panel: Optional[int] = None,
        total_panels: Optional[int] = None,
    ) -> None:
        floor = self.progress.percentage if self.progress else 0.0
        self.progress = GenerationProgress(
            current_step=step,
            percentage=round(min(100.0, max(floor, percentage)), 2),
            current_panel=current_panel,
            total_panels=total_panels,
        )
        self.publish()

    def add_message(self, message: str) -> None:
        self.messages.append(message)
        self.publish()

    def set_records(self, specs: List[PanelSpec]) -> None:
        self.records = [PanelRecord(**s.model_dump()) for s in specs]
        self.publish()

    def resolve_panel(self, index: int, final_prompt: str, image_url: str) -> None:
        rec = self.records[index]
        rec.status = PanelStatus.RESOLVED
        rec.final_prompt = final_prompt
        rec.image_url = image_url
        rec.error = None
        self.publish()

    def fail_panel(self, index: int, final_prompt: Optional[str], error: str) -> None:
        rec = self.records[index]
        rec.status = PanelStatus.FAILED
        rec.final_prompt = final_prompt
        rec.image_url = None
        rec.error = error
        self.messages.append(f"Error on panel {rec.scene_number}: {error}")
        self.publish()

    def fail(self, message: str, *, keep_records: bool = False) -> None:
        """
        End the run in ERROR. Before rendering there is nothing to keep; a run that
        halts later keeps the panels it already produced.
        """
        if not keep_records:
            self.records = []
            self.progress = None
        self.state = RunState.ERROR
        self.messages.append(message)
        self.publish()


class RunRegistry:
    """In-memory runs by id; the oldest are dropped past max_runs. Nothing is persisted."""

    def __init__(self, max_runs: int = config.max_tracked_runs):
        self._runs: "OrderedDict[str, RunContext]" = OrderedDict()
        self._max = max(1, max_runs)

    def add(self, ctx: RunContext) -> RunContext:
        self._runs[ctx.run_id] = ctx
        while len(self._runs) > self._max:
            old_id, old = self._runs.popitem(last=False)
            old.cancel_token.cancel()
            log.info(f"evicted run {old_id}")
        return ctx

    def get(self, run_id: str) -> Optional[RunContext]:
        return self._runs.get(run_id)

    def __len__(self) -> int:
        return len(self._runs)

    def clear(self) -> None:
        for ctx in self._runs.values():
            ctx.cancel_token.cancel()
        self._runs.clear()


runs = RunRegistry()
