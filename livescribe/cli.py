"""Typer CLI entry point for livescribe."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer

from .config import get_settings, list_environment_settings
from .core.audio.devices import format_device_table
from .core.audio.factory import create_microphone
from .core.pipeline.controller import RecordingController
from .data.models import RecordingState, SessionState
from .errors import ConfigError, DeviceError
from .logging import configure_logging, get_logger
from .services.factory import resolve_segment_transcriber
from .services.meetings import MeetingServiceError

app = typer.Typer(help="livescribe live meeting transcription")
LOGGER = get_logger(__name__)

_SECRET_FIELDS = {"auth_token", "openai_api_key"}


def _format_value(value: object) -> str:
    if value is None:
        return "-"
    return str(value)


@app.command()
def devices() -> None:
    """List available audio input devices."""

    configure_logging()
    typer.echo(format_device_table())


@app.command("settings")
def show_settings() -> None:
    """Show environment-backed settings and their current values."""

    configure_logging()
    rows = list(list_environment_settings())
    width = max(len(row.env_name) for row in rows)
    for row in rows:
        marker = "" if row.value == row.default else " (overridden)"
        value = _format_value(row.value)
        if row.value is not None and row.field in _SECRET_FIELDS:
            value = "***"
        typer.echo(f"{row.env_name:<{width}}  {value}{marker}")


async def _wait_for_end(finished: asyncio.Event, duration: Optional[float]) -> None:
    if duration is None:
        await finished.wait()
        return
    try:
        await asyncio.wait_for(finished.wait(), timeout=duration)
    except asyncio.TimeoutError:
        LOGGER.info("Recording duration reached; stopping")


async def _run_session(
    controller: RecordingController,
    mode: Optional[str],
    duration: Optional[float],
    output: Optional[str],
    meeting_id: Optional[str],
    notes: str,
) -> None:
    finished = asyncio.Event()

    def _on_state(state: RecordingState) -> None:
        if state.error:
            typer.echo(f"! {state.error}", err=True)
        if state.state is SessionState.IDLE:
            finished.set()

    controller.subscribe_transcript(lambda text: typer.echo(f"> {text}"))
    controller.subscribe(_on_state)

    session = await controller.start(mode)
    finished.clear()
    typer.echo(f"Recording {session.session_id} ({session.mode.value}); press Ctrl+C to stop")
    try:
        await _wait_for_end(finished, duration)
    finally:
        await controller.stop()
        path = await controller.save_final_output(output)
        if path is not None:
            typer.echo(f"Recording saved to {path}")
        if meeting_id:
            try:
                await controller.publish_to_meeting(meeting_id, notes=notes)
                typer.echo(f"Transcript published to meeting {meeting_id}")
            except MeetingServiceError as exc:
                typer.echo(f"Failed to update meeting {meeting_id}: {exc}", err=True)
        await controller.aclose()


@app.command()
def record(
    mode: Optional[str] = typer.Option(None, help="Transcription mode: streaming/segmented"),
    mic_device: Optional[str] = typer.Option(None, help="Input device id/name for the microphone"),
    duration: Optional[float] = typer.Option(None, help="Duration in seconds; default waits for Ctrl+C"),
    segment_backend: Optional[str] = typer.Option(None, help="Segment backend: http/openai/dummy/none"),
    output: Optional[str] = typer.Option(None, help="Filename for the final recording"),
    meeting_id: Optional[str] = typer.Option(None, help="Meeting to receive the transcript"),
    notes: str = typer.Option("", help="Notes sent along with the transcript"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Record from the microphone and print the transcript as it arrives."""

    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level, force=verbose)

    try:
        transcriber = resolve_segment_transcriber(segment_backend or settings.segment_backend, settings)
        controller = RecordingController(
            settings,
            capture_factory=lambda: create_microphone(mic_device, settings),
            transcriber=transcriber,
        )
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc

    try:
        asyncio.run(_run_session(controller, mode, duration, output, meeting_id, notes))
    except DeviceError as exc:
        typer.echo(f"Microphone unavailable: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except KeyboardInterrupt:
        typer.echo("Recording interrupted")

    transcript = controller.assembler.transcript_text()
    if transcript:
        typer.echo("Transcript:")
        typer.echo(transcript)


if __name__ == "__main__":  # pragma: no cover
    app()
