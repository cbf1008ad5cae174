"""Tests for SpeechSynthesisController."""

import asyncio
import json

import httpx
import pytest

from tutorcore.config import Settings, Voice
from tutorcore.errors import ExternalServiceError, InvalidState, ValidationError
from tutorcore.services import (
    HostedSynthesisBackend,
    LocalSynthesisBackend,
    PlaybackState,
    SpeechSynthesisController,
)


@pytest.fixture
def notices():
    return []


@pytest.fixture
def controller(hosted_backend, local_backend, output, notices):
    return SpeechSynthesisController(
        [hosted_backend, local_backend], output, on_notice=notices.append, timeout=1.0
    )


async def _drain():
    """Let call_soon_threadsafe callbacks run."""
    await asyncio.sleep(0)
    await asyncio.sleep(0)


class TestSpeechSynthesisController:
    """Tests for SpeechSynthesisController."""

    class TestNegotiation:
        """SUT: SpeechSynthesisController capabilities"""

        def test_both_available(self, controller):
            assert controller.capabilities.supports_hosted is True
            assert controller.capabilities.supports_local is True

        def test_resolved_once(self, hosted_backend, local_backend, output):
            """Availability changes after construction do not alter the chain."""
            local_backend.available = False
            controller = SpeechSynthesisController([hosted_backend, local_backend], output)
            local_backend.available = True
            assert controller.capabilities.supports_local is False
            assert controller.backends == [hosted_backend]

        def test_hosted_requires_key(self):
            assert HostedSynthesisBackend(api_key=None).is_available() is False
            assert HostedSynthesisBackend(api_key="sk").is_available() is True

        def test_local_disabled(self):
            assert LocalSynthesisBackend(enabled=False).is_available() is False

        def test_from_settings_without_key(self, output):
            settings = Settings(_env_file=None, openai_api_key=None, enable_local_synthesis=False)
            controller = SpeechSynthesisController.from_settings(settings, output=output)
            assert controller.capabilities.supports_hosted is False
            assert controller.capabilities.supports_local is False

    class TestPlay:
        """SUT: SpeechSynthesisController.play"""

        async def test_plays_synthesized_audio(self, controller, hosted_backend, output):
            await controller.play("m1", "Hello")
            assert output.started == [b"hosted-wav"]
            assert controller.state == PlaybackState.PLAYING
            assert controller.is_cached("m1")

        async def test_cache_synthesizes_once(self, controller, hosted_backend, output):
            """Two plays of the same message call the service at most once."""
            await controller.play("m1", "Hello")
            await controller.play("m1", "Hello")
            assert len(hosted_backend.calls) == 1
            assert output.started == [b"hosted-wav", b"hosted-wav"]

        async def test_cache_keyed_by_message(self, controller, hosted_backend):
            """Identical text in a different message is synthesized again."""
            await controller.play("m1", "Hello")
            await controller.play("m2", "Hello")
            assert len(hosted_backend.calls) == 2

        async def test_new_play_stops_previous(self, controller, output):
            await controller.play("m1", "Hello")
            await controller.play("m2", "World")
            assert output.stop_count == 1
            assert controller.current_message_id == "m2"

        async def test_finished_returns_to_idle(self, controller, output):
            await controller.play("m1", "Hello")
            output.finish()
            await _drain()
            assert controller.state == PlaybackState.IDLE

        async def test_stale_finish_ignored(self, controller, output):
            """The end of a superseded clip does not stop the current one."""
            await controller.play("m1", "Hello")
            first_finish = output._on_finished
            await controller.play("m2", "World")
            first_finish()
            await _drain()
            assert controller.state == PlaybackState.PLAYING

        async def test_empty_text(self, controller):
            with pytest.raises(ValidationError):
                await controller.play("m1", "   ")

        async def test_supersede_while_loading(self, controller, hosted_backend, output):
            """A result that arrives after a newer play is cached but not played."""
            hosted_backend.gate = asyncio.Event()
            first = asyncio.create_task(controller.play("m1", "Hello"))
            await asyncio.sleep(0)
            assert controller.state == PlaybackState.LOADING

            hosted_backend.gate.set()
            hosted_backend.payload = b"second"
            await controller.play("m2", "World")
            await first

            assert controller.is_cached("m1")
            assert output.started[-1] == b"second"
            assert controller.current_message_id == "m2"

        async def test_stop_while_loading(self, controller, hosted_backend, output):
            hosted_backend.gate = asyncio.Event()
            task = asyncio.create_task(controller.play("m1", "Hello"))
            await asyncio.sleep(0)
            controller.stop()
            hosted_backend.gate.set()
            await task
            assert output.started == []
            assert controller.state == PlaybackState.IDLE

        async def test_overlapping_plays_share_synthesis(self, controller, hosted_backend, output):
            """A replay while the same message is loading joins the pending synthesis."""
            hosted_backend.gate = asyncio.Event()
            auto_play = asyncio.create_task(controller.play("m1", "Hello"))
            await asyncio.sleep(0)
            user_play = asyncio.create_task(controller.play("m1", "Hello"))
            await asyncio.sleep(0)

            hosted_backend.gate.set()
            await asyncio.gather(auto_play, user_play)

            assert hosted_backend.calls == ["Hello"]
            assert output.started == [b"hosted-wav"]
            assert controller.state == PlaybackState.PLAYING

        async def test_overlapping_plays_share_failure(self, controller, hosted_backend, local_backend, notices):
            hosted_backend.gate = asyncio.Event()
            hosted_backend.error = RuntimeError("down")
            local_backend.error = RuntimeError("no engine")
            first = asyncio.create_task(controller.play("m1", "Hello"))
            await asyncio.sleep(0)
            second = asyncio.create_task(controller.play("m1", "Hello"))
            await asyncio.sleep(0)

            hosted_backend.gate.set()
            results = await asyncio.gather(first, second, return_exceptions=True)

            assert all(isinstance(r, ExternalServiceError) for r in results)
            assert len(hosted_backend.calls) == 1
            assert len(notices) == 1
            assert controller.state == PlaybackState.IDLE

        async def test_cancelled_play_still_caches(self, controller, hosted_backend):
            hosted_backend.gate = asyncio.Event()
            task = asyncio.create_task(controller.play("m1", "Hello"))
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

            hosted_backend.gate.set()
            for _ in range(5):
                await asyncio.sleep(0)
            assert controller.is_cached("m1")

    class TestCache:
        """SUT: SpeechSynthesisController cache bound"""

        async def test_evicts_oldest(self, hosted_backend, output):
            controller = SpeechSynthesisController([hosted_backend], output, cache_size=2)
            await controller.play("m1", "one")
            await controller.play("m2", "two")
            await controller.play("m3", "three")

            assert not controller.is_cached("m1")
            assert controller.is_cached("m2")
            assert controller.is_cached("m3")

        async def test_replay_refreshes_entry(self, hosted_backend, output):
            controller = SpeechSynthesisController([hosted_backend], output, cache_size=2)
            await controller.play("m1", "one")
            await controller.play("m2", "two")
            await controller.play("m1", "one")
            await controller.play("m3", "three")

            assert controller.is_cached("m1")
            assert not controller.is_cached("m2")
            assert len(hosted_backend.calls) == 3

        def test_size_from_settings(self, output):
            settings = Settings(_env_file=None, synthesis_cache_size=4)
            controller = SpeechSynthesisController.from_settings(settings, output=output)
            assert controller.cache_size == 4

    class TestFallback:
        """SUT: SpeechSynthesisController fallback chain"""

        async def test_falls_back_to_local(self, controller, hosted_backend, local_backend, output, notices):
            hosted_backend.error = RuntimeError("quota exceeded")
            await controller.play("m1", "Hello")
            assert output.started == [b"local-wav"]
            assert len(notices) == 1
            assert "offline voice" in notices[0].message
            assert controller.state == PlaybackState.PLAYING

        async def test_no_notice_when_preferred_works(self, controller, output, notices):
            await controller.play("m1", "Hello")
            assert notices == []

        async def test_all_fail(self, controller, hosted_backend, local_backend, output, notices):
            hosted_backend.error = RuntimeError("down")
            local_backend.error = RuntimeError("no engine")
            with pytest.raises(ExternalServiceError):
                await controller.play("m1", "Hello")
            assert controller.state == PlaybackState.IDLE
            assert output.started == []
            assert not controller.is_cached("m1")
            assert [n.message for n in notices] == ["Voice playback is unavailable right now."]

        async def test_no_backends(self, output):
            controller = SpeechSynthesisController([], output)
            with pytest.raises(ExternalServiceError):
                await controller.play("m1", "Hello")
            assert controller.state == PlaybackState.IDLE

        async def test_timeout_falls_back(self, hosted_backend, local_backend, output):
            hosted_backend.gate = asyncio.Event()
            controller = SpeechSynthesisController([hosted_backend, local_backend], output, timeout=0.05)
            await controller.play("m1", "Hello")
            assert output.started == [b"local-wav"]

    class TestControls:
        """SUT: SpeechSynthesisController pause/resume/volume/mute"""

        async def test_pause_resume(self, controller, output):
            await controller.play("m1", "Hello")
            controller.pause()
            assert controller.state == PlaybackState.PAUSED
            assert output.paused is True
            controller.resume()
            assert controller.state == PlaybackState.PLAYING
            assert output.paused is False

        def test_pause_when_idle(self, controller):
            with pytest.raises(InvalidState):
                controller.pause()

        async def test_volume_applies_to_playing_audio(self, controller, output):
            await controller.play("m1", "Hello")
            controller.set_volume(0.3)
            assert output.volume == 0.3

        def test_volume_clamped(self, controller, output):
            controller.set_volume(4)
            assert controller.volume == 1.0
            controller.set_volume(-1)
            assert controller.volume == 0.0

        async def test_mute_independent_of_state(self, controller, output):
            controller.set_volume(0.8)
            controller.mute()
            assert output.volume == 0.0
            await controller.play("m1", "Hello")
            assert output.volume == 0.0
            controller.mute(False)
            assert output.volume == 0.8

        async def test_clear_cache(self, controller):
            await controller.play("m1", "Hello")
            controller.clear_cache()
            assert not controller.is_cached("m1")


class TestHostedSynthesisBackend:
    """SUT: HostedSynthesisBackend.synthesize"""

    async def test_request(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["json"] = json.loads(request.content)
            return httpx.Response(200, content=b"RIFFwav")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            backend = HostedSynthesisBackend("sk", "https://api.example.com/v1", max_chars=5, client=client)
            payload = await backend.synthesize("Hello world", Voice.NOVA)

        assert payload == b"RIFFwav"
        assert seen["url"] == "https://api.example.com/v1/audio/speech"
        assert seen["json"]["input"] == "Hello"
        assert seen["json"]["voice"] == "nova"
        assert seen["json"]["response_format"] == "wav"
