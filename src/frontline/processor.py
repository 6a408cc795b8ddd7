import logging
from typing import Awaitable, Callable

from pipecat.frames.frames import EndFrame, Frame, TranscriptionFrame, TTSSpeakFrame
from pipecat.processors.frame_processor import FrameDirection, FrameProcessor

from frontline.models import TurnResult
from frontline.session import CallState

logger = logging.getLogger(__name__)


class TurnProcessor(FrameProcessor):
    """Pipecat processor that runs each final transcription through Brain1Runtime.

    Sits where the LLM would normally sit:
      transport.input() -> STT -> [TurnProcessor] -> TTS -> transport.output()

    On each final transcription it calls process_turn, speaks the returned
    text, keeps the returned CallState for the next turn, and pushes an
    EndFrame after a hangup.  Transfers are handed to `on_transfer` since
    how a call is bridged depends on the telephony provider.
    Interim transcriptions and every other frame pass straight through.
    """

    def __init__(
        self,
        runtime,
        company_id: str,
        call_id: str,
        call_state: CallState | None = None,
        on_transfer: Callable[[TurnResult], Awaitable[None]] | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.runtime = runtime
        self.company_id = company_id
        self.call_id = call_id
        self.call_state = call_state or CallState(call_id=call_id, company_id=company_id)
        self.on_transfer = on_transfer
        self.last_result: TurnResult | None = None

    async def process_frame(self, frame: Frame, direction: FrameDirection):
        await super().process_frame(frame, direction)

        if isinstance(frame, TranscriptionFrame) and frame.text.strip():
            await self._handle_transcription(frame)
        else:
            await self.push_frame(frame, direction)

    async def _handle_transcription(self, frame: TranscriptionFrame):
        if self.call_state.call_ended:
            logger.debug("Ignoring transcription after call end on %s", self.call_id)
            return

        result = await self.runtime.process_turn(
            self.company_id, self.call_id, frame.text.strip(), self.call_state,
        )
        self.call_state = result.call_state
        self.last_result = result

        await self.push_frame(TTSSpeakFrame(result.text))

        if result.should_hangup:
            logger.info("Ending call %s after turn %d", self.call_id, self.call_state.turn_count)
            self.call_state.call_ended = True
            await self.push_frame(EndFrame())
        elif result.should_transfer and self.on_transfer is not None:
            try:
                await self.on_transfer(result)
            except Exception as e:
                logger.error("Transfer hook failed for %s: %s", self.call_id, e)
