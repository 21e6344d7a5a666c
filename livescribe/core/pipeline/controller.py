"""Recording controller coordinating capture, segmentation, transcription and output."""

from __future__ import annotations

import asyncio
import contextlib
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

import numpy as np

from ...config import Settings, get_settings
from ...data.models import (
    AudioSegment,
    RecordingMode,
    RecordingSession,
    RecordingState,
    SessionState,
    TranscriptFragment,
    utcnow,
)
from ...data.storage import RecordingStore
from ...errors import ChannelExhausted, ConfigError, TranscriptionError
from ...logging import get_logger
from ...services.meetings import MeetingsClient
from ...services.streaming.channel import StreamingTranscriptionChannel
from ...services.transcription.base import SegmentTranscriber
from ...utils.audio import encode_wav, pcm16_bytes
from ..audio.base import AudioCapture
from ..audio.factory import create_microphone
from ..audio.stream import LiveAudioStream, StreamTap
from .assembler import TranscriptAssembler
from .scheduler import SchedulerConfig, SegmentScheduler
from .silence import SilenceGate

LOGGER = get_logger(__name__)

StateObserver = Callable[[RecordingState], None]
TranscriptObserver = Callable[[str], None]


class RecordingController:
    """Owns one recording session at a time and exposes it to the UI.

    ``start()`` acquires the microphone and begins either segmented or
    streaming transcription; ``stop()`` is the single cancellation entry point
    and always releases the device. Observers registered through
    :meth:`subscribe` and :meth:`subscribe_transcript` are notified on every
    state transition and every new transcript fragment respectively.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        capture_factory: Optional[Callable[[], AudioCapture]] = None,
        transcriber: Optional[SegmentTranscriber] = None,
        channel: Optional[StreamingTranscriptionChannel] = None,
        assembler: Optional[TranscriptAssembler] = None,
        store: Optional[RecordingStore] = None,
        meetings: Optional[MeetingsClient] = None,
        gate: Optional[SilenceGate] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.scheduler_config = SchedulerConfig(
            segment_duration_ms=self.settings.segment_duration_ms,
            overlap_ms=self.settings.overlap_ms,
        )
        self._capture_factory = capture_factory or (lambda: create_microphone(settings=self.settings))
        self.transcriber = transcriber
        self.assembler = assembler or TranscriptAssembler()
        self.store = store or RecordingStore(self.settings.base_dir)
        self.meetings = meetings
        self.gate = gate or SilenceGate(
            threshold_db=self.settings.silence_threshold_db,
            enabled=self.settings.silence_gate_enabled,
        )
        self.drain_timeout = self.settings.drain_timeout_ms / 1000.0

        self._channel = channel
        if channel is not None:
            self._wire_channel(channel)

        self._state = SessionState.IDLE
        self._mode: Optional[RecordingMode] = None
        self._session: Optional[RecordingSession] = None
        self._stream: Optional[LiveAudioStream] = None
        self._session_tap: Optional[StreamTap] = None
        self._stream_tap: Optional[StreamTap] = None
        self._scheduler: Optional[SegmentScheduler] = None
        self._remove_end_listener: Optional[Callable[[], None]] = None
        self._stop_task: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._final_output: Optional[bytes] = None
        self._error: Optional[str] = None
        self._state_observers: List[StateObserver] = []
        self._transcript_observers: List[TranscriptObserver] = []

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def mode(self) -> Optional[RecordingMode]:
        return self._mode

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    @property
    def is_recording(self) -> bool:
        return self._state is SessionState.RECORDING

    @property
    def has_final_output(self) -> bool:
        return self._final_output is not None

    @property
    def final_output(self) -> Optional[bytes]:
        return self._final_output

    @property
    def channel(self) -> Optional[StreamingTranscriptionChannel]:
        return self._channel

    @property
    def scheduler(self) -> Optional[SegmentScheduler]:
        return self._scheduler

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def snapshot(self) -> RecordingState:
        return RecordingState(
            is_recording=self.is_recording,
            has_final_output=self.has_final_output,
            state=self._state,
            mode=self._mode,
            error=self._error,
        )

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        self._state_observers.append(observer)
        return lambda: self._unsubscribe(self._state_observers, observer)

    def subscribe_transcript(self, observer: TranscriptObserver) -> Callable[[], None]:
        self._transcript_observers.append(observer)
        return lambda: self._unsubscribe(self._transcript_observers, observer)

    @staticmethod
    def _unsubscribe(observers: List[Any], observer: Any) -> None:
        with contextlib.suppress(ValueError):
            observers.remove(observer)

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        self._notify()

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for observer in list(self._state_observers):
            try:
                observer(snapshot)
            except Exception:  # pragma: no cover - callbacks should not break pipeline
                LOGGER.exception("State observer raised an exception")

    # ------------------------------------------------------------------ start

    async def start(self, mode: Optional[RecordingMode | str] = None) -> RecordingSession:
        """Acquire the microphone and start transcribing.

        Raises :class:`~livescribe.errors.DeviceError` if the microphone cannot
        be opened; the controller then stays idle with the device released.
        """

        if self._state is not SessionState.IDLE:
            raise RuntimeError(f"Cannot start while {self._state.value}")
        try:
            selected = RecordingMode(mode or self.settings.mode)
        except ValueError as exc:
            raise ConfigError(f"Unknown recording mode: {mode}") from exc
        if selected is RecordingMode.SEGMENTED and self.transcriber is None:
            raise ConfigError("Segmented recording requires a segment transcriber")

        stream = LiveAudioStream(self._capture_factory())
        stream.start()

        info = stream.info
        session = RecordingSession(
            session_id=f"session-{uuid.uuid4().hex[:8]}",
            start_time=utcnow(),
            mode=selected,
            sample_rate=info.sample_rate,
            channels=info.channels,
            state=SessionState.RECORDING,
        )
        self.assembler.reset()
        self._final_output = None
        self._error = None
        self._stop_task = None
        self._stream = stream
        self._session = session
        self._mode = selected
        try:
            self._session_tap = stream.clone(name="session")
            self._remove_end_listener = stream.add_end_listener(self._on_stream_end)
            if selected is RecordingMode.SEGMENTED:
                self._start_segmented(stream)
            else:
                await self._start_streaming(stream)
        except BaseException:
            if self._scheduler is not None:
                self._scheduler.stop()
                self._scheduler = None
            self._teardown()
            self._session = None
            self._mode = None
            raise

        LOGGER.info("Recording session %s started in %s mode", session.session_id, selected.value)
        self._set_state(SessionState.RECORDING)
        return session

    def _start_segmented(self, stream: LiveAudioStream) -> None:
        self._scheduler = SegmentScheduler(self.scheduler_config, self._submit_segment, gate=self.gate)
        self._scheduler.start(stream)

    async def _start_streaming(self, stream: LiveAudioStream) -> None:
        if self._channel is None:
            self._channel = StreamingTranscriptionChannel(settings=self.settings)
            self._wire_channel(self._channel)
        await self._channel.connect()
        self._stream_tap = stream.clone(
            name="duplex",
            on_data=self._forward_chunk,
            timeslice_ms=self.settings.chunk_ms,
            keep_audio=False,
        )

    def _wire_channel(self, channel: StreamingTranscriptionChannel) -> None:
        channel.on_fragment = self._on_fragment
        channel.on_exhausted = self._on_channel_exhausted

    # --------------------------------------------------------------- pipeline

    def _forward_chunk(self, data: np.ndarray) -> None:
        if self._channel is not None:
            self._channel.send_chunk(pcm16_bytes(data))

    def _submit_segment(self, segment: AudioSegment) -> None:
        task = asyncio.get_running_loop().create_task(self._transcribe(segment))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _transcribe(self, segment: AudioSegment) -> None:
        assert self.transcriber is not None
        try:
            fragment = await self.transcriber.submit(segment)
        except TranscriptionError as exc:
            LOGGER.warning("Dropping segment %s: %s", segment.segment_id, exc)
            return
        except Exception:
            LOGGER.exception("Unexpected failure transcribing segment %s; dropping it", segment.segment_id)
            return
        self._on_fragment(fragment)

    def _on_fragment(self, fragment: TranscriptFragment) -> None:
        stored = self.assembler.on_fragment(fragment)
        if stored is None:
            return
        for observer in list(self._transcript_observers):
            try:
                observer(stored.text)
            except Exception:  # pragma: no cover - callbacks should not break pipeline
                LOGGER.exception("Transcript observer raised an exception")

    def _on_stream_end(self, error: Optional[BaseException]) -> None:
        self._error = f"Microphone stream ended: {error}" if error else "Microphone stream ended"
        LOGGER.warning("%s", self._error)
        self._begin_stop()

    def _on_channel_exhausted(self, exc: ChannelExhausted) -> None:
        self._error = str(exc)
        stream = self._stream
        can_fallback = (
            self.settings.fallback_to_segmented
            and self.transcriber is not None
            and self._state is SessionState.RECORDING
            and stream is not None
            and stream.active
        )
        if not can_fallback:
            self._begin_stop()
            return

        LOGGER.warning("Falling back to segmented transcription")
        if self._stream_tap is not None:
            self._stream_tap.stop()
            self._stream_tap = None
        self._mode = RecordingMode.SEGMENTED
        if self._session is not None:
            self._session.mode = RecordingMode.SEGMENTED
        self._start_segmented(stream)
        self._notify()

    # ------------------------------------------------------------------- stop

    def _begin_stop(self) -> None:
        if self._state is SessionState.RECORDING and self._stop_task is None:
            self._stop_task = asyncio.get_running_loop().create_task(self._shutdown())

    async def stop(self) -> Optional[RecordingSession]:
        """Stop recording, drain in-flight submissions and finalize the output."""

        if self._state is SessionState.IDLE:
            return None
        if self._stop_task is None:
            self._stop_task = asyncio.get_running_loop().create_task(self._shutdown())
        return await asyncio.shield(self._stop_task)

    async def _shutdown(self) -> Optional[RecordingSession]:
        session = self._session
        self._set_state(SessionState.STOPPING)
        try:
            if self._scheduler is not None:
                self._scheduler.stop()
            self._teardown()
            if self._channel is not None and self._channel.connection is not None:
                await self._channel.disconnect()
            await self._drain()
        finally:
            self._teardown()
            self._scheduler = None
            if session is not None:
                session.state = SessionState.STOPPED
                session.duration = (utcnow() - session.start_time).total_seconds()
                LOGGER.info(
                    "Recording session %s stopped after %.1fs with %s fragment(s)",
                    session.session_id,
                    session.duration,
                    len(self.assembler),
                )
            self._session = None
            self._set_state(SessionState.IDLE)
        return session

    def _teardown(self) -> None:
        """Release the microphone and capture the final output. Safe to call twice."""

        if self._remove_end_listener is not None:
            self._remove_end_listener()
            self._remove_end_listener = None
        if self._stream is not None:
            self._stream.stop()
            self._stream = None
        self._stream_tap = None
        if self._session_tap is not None:
            chunks = self._session_tap.stop()
            self._session_tap = None
            if chunks and self._session is not None:
                self._final_output = encode_wav(chunks, self._session.sample_rate, self._session.channels)

    async def _drain(self) -> None:
        pending = set(self._in_flight)
        if not pending:
            return
        LOGGER.info("Waiting up to %.1fs for %s in-flight submission(s)", self.drain_timeout, len(pending))
        _, unfinished = await asyncio.wait(pending, timeout=self.drain_timeout)
        if unfinished:
            LOGGER.warning("Abandoning %s submission(s) still in flight", len(unfinished))
            for task in unfinished:
                task.cancel()
            await asyncio.gather(*unfinished, return_exceptions=True)

    # ----------------------------------------------------------------- output

    async def save_final_output(self, filename: Optional[str] = None) -> Optional[Path]:
        if self._final_output is None:
            LOGGER.error("No recording to save")
            return None
        try:
            return await asyncio.to_thread(self.store.save_audio_file, self._final_output, filename)
        except OSError:
            LOGGER.exception("Error saving recording")
            return None

    async def publish_to_meeting(
        self,
        meeting_id: str,
        notes: str = "",
        title: Optional[str] = None,
        token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Send the committed transcript and notes to the meeting record."""

        if self.meetings is None:
            self.meetings = MeetingsClient(settings=self.settings)
        return await self.meetings.update_meeting(
            token or self.settings.auth_token or "",
            meeting_id,
            transcription=self.assembler.transcript_text(),
            notes=notes,
            title=title,
        )

    async def aclose(self) -> None:
        await self.stop()
        if self.transcriber is not None:
            await self.transcriber.aclose()
        if self.meetings is not None:
            await self.meetings.aclose()


__all__ = ["RecordingController", "StateObserver", "TranscriptObserver"]
