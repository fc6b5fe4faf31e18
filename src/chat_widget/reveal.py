"""
Incremental reveal scheduler.

Plain text: word tokens are appended in batches before a trailing
progress marker. Rich text: the whole markdown document is mounted first,
then hidden units are faded in, ``3 × chars_per_chunk`` per tick.

Ticks are event-loop callbacks ``delay_ms`` apart. One job per target:
starting a reveal on a target cancels the pending tick of the previous
job on that target.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Union

from chat_widget.models.reveal import (
    SPEED_PRESETS,
    RevealMode,
    RevealSpeed,
    TypingConfig,
    round_half_up,
)
from chat_widget.richtext import RevealNode, parse_markdown, split_words
from chat_widget.surface import RevealTarget

logger = logging.getLogger(__name__)

LARGE_CONTENT_CHARS = 500
UNIT_TRANSITION_MS = 100

_SPEED_ORDER = list(SPEED_PRESETS)


def resolve_speed(speed: Union[str, RevealSpeed, None], large: bool = False) -> RevealSpeed:
    """Preset name → preset. Large content reveals at least at `fast`."""
    try:
        preset = RevealSpeed(speed) if speed is not None else RevealSpeed.NORMAL
    except ValueError:
        logger.debug("Unknown speed preset %r, using normal", speed)
        preset = RevealSpeed.NORMAL
    if large and _SPEED_ORDER.index(preset) < _SPEED_ORDER.index(RevealSpeed.FAST):
        preset = RevealSpeed.FAST
    return preset


def typing_config(
    speed: Union[str, RevealSpeed, None] = RevealSpeed.NORMAL,
    speed_multiplier: float = 1.0,
    large: bool = False,
) -> TypingConfig:
    if speed_multiplier <= 0:
        raise ValueError(f"speed_multiplier must be positive, got {speed_multiplier}")
    preset = SPEED_PRESETS[resolve_speed(speed, large)]
    return TypingConfig(
        chars_per_chunk=max(1, round_half_up(preset.chars * speed_multiplier)),
        delay_ms=max(1, round_half_up(preset.delay_ms / speed_multiplier)),
        large=large,
    )


class RevealJob:
    __slots__ = (
        "target", "source_text", "mode", "config", "items", "chunk_size",
        "cursor", "ticks", "on_complete", "handle", "done", "cancelled",
    )

    def __init__(
        self,
        target: RevealTarget,
        source_text: str,
        mode: RevealMode,
        config: TypingConfig,
        items: list[Any],
        on_complete: Optional[Callable[[], None]] = None,
    ):
        self.target = target
        self.source_text = source_text
        self.mode = mode
        self.config = config
        self.items = items
        self.chunk_size = config.words_per_chunk if mode is RevealMode.PLAIN_TEXT else config.units_per_tick
        self.cursor = 0
        self.ticks = 0
        self.on_complete = on_complete
        self.handle: Optional[asyncio.Handle] = None
        self.done = False
        self.cancelled = False

    @property
    def delay_ms(self) -> int:
        return self.config.delay_ms

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def finished(self) -> bool:
        return self.done or self.cancelled

    def cancel(self) -> None:
        if self.finished:
            return
        self.cancelled = True
        if self.handle is not None:
            self.handle.cancel()
            self.handle = None

    def __repr__(self) -> str:
        return f"RevealJob(mode={self.mode.value}, cursor={self.cursor}/{self.total})"


class RevealScheduler:
    def __init__(
        self,
        speed: Union[str, RevealSpeed] = RevealSpeed.NORMAL,
        speed_multiplier: float = 1.0,
        use_markdown: bool = True,
    ):
        self.speed = speed
        self.speed_multiplier = speed_multiplier
        self.use_markdown = use_markdown
        self._jobs: dict[int, RevealJob] = {}

    def active_job(self, target: RevealTarget) -> Optional[RevealJob]:
        return self._jobs.get(id(target))

    def reveal(
        self,
        target: RevealTarget,
        text: str,
        *,
        speed: Union[str, RevealSpeed, None] = None,
        speed_multiplier: Optional[float] = None,
        use_markdown: Optional[bool] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ) -> Optional[RevealJob]:
        """Start revealing ``text`` into ``target``. Must run on the event loop."""
        if not text:
            return None
        loop = asyncio.get_running_loop()
        self.cancel(target)

        config = typing_config(
            speed if speed is not None else self.speed,
            speed_multiplier if speed_multiplier is not None else self.speed_multiplier,
            large=len(text) > LARGE_CONTENT_CHARS,
        )
        rich = self.use_markdown if use_markdown is None else use_markdown
        logger.debug("Revealing %d chars (chunk=%d, delay=%dms, markdown=%s)",
                     len(text), config.chars_per_chunk, config.delay_ms, rich)

        target.reset()
        job: Optional[RevealJob] = None
        if rich:
            try:
                document = parse_markdown(text)
            except Exception:
                logger.exception("Markdown parsing failed, falling back to plain text")
            else:
                target.mount(document)
                job = RevealJob(target, text, RevealMode.RICH_TEXT, config, document.units, on_complete)
        if job is None:
            target.set_progress_marker(True)
            job = RevealJob(target, text, RevealMode.PLAIN_TEXT, config, split_words(text), on_complete)

        self._jobs[id(target)] = job
        job.handle = loop.call_soon(self._tick, job)
        return job

    def cancel(self, target: RevealTarget) -> bool:
        job = self._jobs.pop(id(target), None)
        if job is None or job.finished:
            return False
        job.cancel()
        logger.debug("Cancelled %r", job)
        return True

    def cancel_all(self) -> None:
        for job in list(self._jobs.values()):
            job.cancel()
        self._jobs.clear()

    def _tick(self, job: RevealJob) -> None:
        job.handle = None
        if job.finished:
            return

        end = min(job.cursor + job.chunk_size, job.total)
        batch = job.items[job.cursor:end]
        if job.target.attached:
            self._write(job, batch)
        else:
            logger.debug("Reveal target detached, skipping tick")
        job.cursor = end
        job.ticks += 1

        if job.cursor >= job.total:
            self._finish(job)
        else:
            loop = asyncio.get_running_loop()
            job.handle = loop.call_later(job.delay_ms / 1000, self._tick, job)

    @staticmethod
    def _write(job: RevealJob, batch: list[Any]) -> None:
        if job.mode is RevealMode.PLAIN_TEXT:
            job.target.append_tokens(batch)
            return
        units: list[RevealNode] = batch
        for unit in units:
            unit.opacity = 1
            unit.transition_ms = UNIT_TRANSITION_MS
        job.target.reveal_units(units, UNIT_TRANSITION_MS)

    def _finish(self, job: RevealJob) -> None:
        job.done = True
        if self._jobs.get(id(job.target)) is job:
            del self._jobs[id(job.target)]
        if job.mode is RevealMode.PLAIN_TEXT and job.target.attached:
            job.target.set_progress_marker(False)
        if job.on_complete is not None:
            try:
                job.on_complete()
            except Exception:
                logger.exception("Reveal completion callback failed")
