"""RevealScheduler pacing, completion and supersession."""

import asyncio
import math
from unittest.mock import patch

import pytest

from chat_widget.models.reveal import RevealMode, RevealSpeed
from chat_widget.reveal import RevealScheduler, resolve_speed, typing_config
from chat_widget.richtext import split_words

from conftest import RecordingTarget


async def run_to_completion(job, timeout: float = 5.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not job.finished:
        assert asyncio.get_running_loop().time() < deadline, "reveal did not finish"
        await asyncio.sleep(0.01)


class TestTypingConfig:
    def test_normal(self):
        cfg = typing_config(RevealSpeed.NORMAL, 1.0)
        assert (cfg.chars_per_chunk, cfg.delay_ms) == (1, 30)
        assert cfg.words_per_chunk == 1
        assert cfg.units_per_tick == 3

    def test_multiplier_scales_both(self):
        cfg = typing_config("normal", 2.0)
        assert (cfg.chars_per_chunk, cfg.delay_ms) == (2, 15)

    def test_slow_multiplier_never_below_one_char(self):
        cfg = typing_config("normal", 0.25)
        assert cfg.chars_per_chunk == 1
        assert cfg.delay_ms == 120

    def test_words_per_chunk_rounds_half_up(self):
        assert typing_config("ultraFast").words_per_chunk == 2
        assert typing_config("veryFast").words_per_chunk == 1
        assert typing_config("normal", 12.5).words_per_chunk == 3  # 12.5 chars → 13 → 2.6

    @pytest.mark.parametrize("multiplier", [0, -1.0])
    def test_rejects_non_positive_multiplier(self, multiplier):
        with pytest.raises(ValueError):
            typing_config("normal", multiplier)


class TestResolveSpeed:
    def test_unknown_preset_falls_back_to_normal(self):
        assert resolve_speed("warp") is RevealSpeed.NORMAL
        assert resolve_speed(None) is RevealSpeed.NORMAL

    @pytest.mark.parametrize("requested", ["verySlow", "slow", "normal", "fast"])
    def test_large_content_is_at_least_fast(self, requested):
        assert resolve_speed(requested, large=True) is RevealSpeed.FAST

    @pytest.mark.parametrize("requested", ["veryFast", "ultraFast"])
    def test_large_content_never_slows_down(self, requested):
        assert resolve_speed(requested, large=True) is RevealSpeed(requested)


class TestPlainReveal:
    @pytest.mark.asyncio
    async def test_tick_count_and_single_completion(self):
        text = "Hello there, how are you?"
        target = RecordingTarget()
        completions = []
        scheduler = RevealScheduler(use_markdown=False)
        job = scheduler.reveal(target, text, on_complete=lambda: completions.append(target.text))

        assert job.mode is RevealMode.PLAIN_TEXT
        assert target.marker is True
        await run_to_completion(job)
        await asyncio.sleep(0.05)

        tokens = split_words(text)
        assert job.ticks == math.ceil(len(tokens) / job.config.words_per_chunk)
        assert completions == [text]
        assert target.text == text
        assert target.marker is False

    @pytest.mark.asyncio
    async def test_batches_follow_words_per_chunk(self):
        target = RecordingTarget()
        scheduler = RevealScheduler(speed="ultraFast", use_markdown=False)
        job = scheduler.reveal(target, "a b c d e")
        await run_to_completion(job)
        assert [len(b) for b in target.batches] == [2, 2, 2, 2, 1]

    @pytest.mark.asyncio
    async def test_large_text_uses_fast_preset(self):
        text = " ".join(["word"] * 120)
        assert len(text) > 500
        scheduler = RevealScheduler(speed="verySlow", use_markdown=False)
        job = scheduler.reveal(RecordingTarget(), text)
        assert job.config.large
        assert (job.config.chars_per_chunk, job.config.delay_ms) == (3, 30)
        scheduler.cancel_all()

    @pytest.mark.asyncio
    async def test_empty_text_starts_nothing(self):
        target = RecordingTarget()
        assert RevealScheduler().reveal(target, "") is None
        assert target.resets == 0

    @pytest.mark.asyncio
    async def test_detached_target_still_completes(self):
        target = RecordingTarget(attached=False)
        completions = []
        job = RevealScheduler(speed="ultraFast", use_markdown=False).reveal(
            target, "one two three", on_complete=lambda: completions.append(1)
        )
        await run_to_completion(job)
        assert target.tokens == []
        assert job.done
        assert completions == [1]


class TestSupersession:
    @pytest.mark.asyncio
    async def test_new_reveal_cancels_previous(self):
        target = RecordingTarget()
        first_done, second_done = [], []
        scheduler = RevealScheduler(use_markdown=False)
        first = scheduler.reveal(target, "a b c d e f g h", on_complete=lambda: first_done.append(1))
        await asyncio.sleep(0.04)
        second = scheduler.reveal(target, "x y", on_complete=lambda: second_done.append(1))

        assert first.cancelled
        assert scheduler.active_job(target) is second
        await run_to_completion(second)
        await asyncio.sleep(0.1)
        assert target.text == "x y"
        assert first_done == []
        assert second_done == [1]
        assert target.resets == 2

    @pytest.mark.asyncio
    async def test_cancel_all_stops_jobs(self):
        a, b = RecordingTarget(), RecordingTarget()
        done = []
        scheduler = RevealScheduler(use_markdown=False)
        jobs = [scheduler.reveal(t, "one two three four", on_complete=lambda: done.append(1)) for t in (a, b)]
        scheduler.cancel_all()
        await asyncio.sleep(0.1)
        assert all(job.cancelled for job in jobs)
        assert done == []
        assert a.tokens == [] and b.tokens == []

    @pytest.mark.asyncio
    async def test_cancel_unknown_target(self):
        assert RevealScheduler().cancel(RecordingTarget()) is False


class TestRichReveal:
    @pytest.mark.asyncio
    async def test_mounts_then_reveals_units(self):
        target = RecordingTarget()
        completions = []
        scheduler = RevealScheduler(use_markdown=True)
        job = scheduler.reveal(target, "# Hi\n\nSome **bold** text", on_complete=lambda: completions.append(1))

        assert job.mode is RevealMode.RICH_TEXT
        assert target.document is not None
        units = target.document.units
        await run_to_completion(job)

        assert job.ticks == math.ceil(len(units) / 3)
        assert all(u.opacity == 1 and u.transition_ms == 100 for u in units)
        assert target.document.visible_text() == "Hi" + "Some bold text"
        assert completions == [1]

    @pytest.mark.asyncio
    async def test_parse_failure_falls_back_to_plain(self):
        target = RecordingTarget()
        with patch("chat_widget.reveal.parse_markdown", side_effect=RuntimeError("bad")):
            job = RevealScheduler(speed="ultraFast").reveal(target, "plain words")
        assert job.mode is RevealMode.PLAIN_TEXT
        await run_to_completion(job)
        assert target.text == "plain words"
