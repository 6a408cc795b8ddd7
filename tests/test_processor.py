import pytest
from unittest.mock import AsyncMock, MagicMock

from frontline.actions import TurnAction
from frontline.models import TurnResult
from frontline.processor import TurnProcessor
from frontline.session import CallState

from pipecat.processors.frame_processor import FrameDirection
from pipecat.frames.frames import EndFrame, InterimTranscriptionFrame, TextFrame, TranscriptionFrame, TTSSpeakFrame


def _result(text="How can I help?", **kwargs):
    state = CallState(call_id="call_1", company_id="acme", turn_count=1)
    return TurnResult(text=text, action=kwargs.pop("action", TurnAction.CONTINUE), call_state=state, **kwargs)


@pytest.fixture
def processor():
    runtime = MagicMock()
    runtime.process_turn = AsyncMock(return_value=_result())
    proc = TurnProcessor(runtime=runtime, company_id="acme", call_id="call_1")
    # Mock push_frame to capture output
    proc.push_frame = AsyncMock()
    return proc


def _pushed(proc):
    return [c.args[0] for c in proc.push_frame.call_args_list]


class TestTranscription:
    @pytest.mark.asyncio
    async def test_runs_turn_and_speaks(self, processor):
        await processor.process_frame(
            TranscriptionFrame(text="  my AC is broken ", user_id="", timestamp=""),
            FrameDirection.DOWNSTREAM,
        )
        processor.runtime.process_turn.assert_awaited_once()
        company_id, call_id, text, state = processor.runtime.process_turn.call_args.args
        assert (company_id, call_id, text) == ("acme", "call_1", "my AC is broken")
        assert state.turn_count == 0
        frames = _pushed(processor)
        assert len(frames) == 1
        assert isinstance(frames[0], TTSSpeakFrame)
        assert frames[0].text == "How can I help?"

    @pytest.mark.asyncio
    async def test_keeps_returned_state(self, processor):
        await processor.process_frame(
            TranscriptionFrame(text="hello", user_id="", timestamp=""), FrameDirection.DOWNSTREAM,
        )
        assert processor.call_state.turn_count == 1
        assert processor.last_result.text == "How can I help?"

    @pytest.mark.asyncio
    async def test_hangup_ends_call(self, processor):
        processor.runtime.process_turn.return_value = _result(
            "Goodbye.", action=TurnAction.HANGUP, should_hangup=True,
        )
        await processor.process_frame(
            TranscriptionFrame(text="press 1", user_id="", timestamp=""), FrameDirection.DOWNSTREAM,
        )
        frames = _pushed(processor)
        assert isinstance(frames[0], TTSSpeakFrame)
        assert isinstance(frames[1], EndFrame)
        assert processor.call_state.call_ended is True

    @pytest.mark.asyncio
    async def test_ignores_speech_after_call_end(self, processor):
        processor.call_state.call_ended = True
        await processor.process_frame(
            TranscriptionFrame(text="hello?", user_id="", timestamp=""), FrameDirection.DOWNSTREAM,
        )
        processor.runtime.process_turn.assert_not_called()
        processor.push_frame.assert_not_called()


class TestTransfer:
    @pytest.mark.asyncio
    async def test_transfer_hook_called(self, processor):
        hook = AsyncMock()
        processor.on_transfer = hook
        transfer = _result("Connecting you now.", action=TurnAction.TRANSFER, should_transfer=True)
        processor.runtime.process_turn.return_value = transfer
        await processor.process_frame(
            TranscriptionFrame(text="I smell gas", user_id="", timestamp=""), FrameDirection.DOWNSTREAM,
        )
        hook.assert_awaited_once_with(transfer)

    @pytest.mark.asyncio
    async def test_transfer_hook_failure_is_logged(self, processor, caplog):
        processor.on_transfer = AsyncMock(side_effect=RuntimeError("twilio down"))
        processor.runtime.process_turn.return_value = _result(
            "Connecting you now.", action=TurnAction.TRANSFER, should_transfer=True,
        )
        await processor.process_frame(
            TranscriptionFrame(text="I smell gas", user_id="", timestamp=""), FrameDirection.DOWNSTREAM,
        )
        assert "Transfer hook failed" in caplog.text
        assert isinstance(_pushed(processor)[0], TTSSpeakFrame)


class TestPassThrough:
    @pytest.mark.asyncio
    async def test_other_frames_pass_through(self, processor):
        frame = TextFrame(text="not a transcription")
        await processor.process_frame(frame, FrameDirection.DOWNSTREAM)
        processor.push_frame.assert_awaited_once_with(frame, FrameDirection.DOWNSTREAM)
        processor.runtime.process_turn.assert_not_called()

    @pytest.mark.asyncio
    async def test_interim_transcription_passes_through(self, processor):
        frame = InterimTranscriptionFrame(text="my A", user_id="", timestamp="")
        await processor.process_frame(frame, FrameDirection.DOWNSTREAM)
        processor.runtime.process_turn.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_transcription_passes_through(self, processor):
        frame = TranscriptionFrame(text="   ", user_id="", timestamp="")
        await processor.process_frame(frame, FrameDirection.DOWNSTREAM)
        processor.runtime.process_turn.assert_not_called()
        processor.push_frame.assert_awaited_once_with(frame, FrameDirection.DOWNSTREAM)
