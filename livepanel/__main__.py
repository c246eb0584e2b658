#!/usr/bin/env python3
"""
Main entry point for the live interview client.
Allows running the package with: python -m livepanel <token>
"""
import asyncio
import sys

from .config import get_config, validate_base_url
from .interview import InterviewSession, EventType, EventLogger, SessionMetrics
from .interview.models import SessionState
from .utils import setup_logging

SPEAKER_PREFIX = {"ai": "🤖", "candidate": "🧑", "system": "ℹ️ "}

USAGE = ("Usage: python -m livepanel <token> [--url=ws://host:port] [--no-tts|--text] "
         "[--no-video] [--chunk-seconds=N]")


def _print_status(event) -> None:
    print(f"📡 {event.data['status']}")


def _print_transcript(event) -> None:
    # Live candidate lines are rewritten many times; only print new lines
    if event.data["appended"] or event.data["speaker"] != "candidate":
        prefix = SPEAKER_PREFIX.get(event.data["speaker"], "•")
        print(f"{prefix} {event.data['text']}")


def _print_summary(session: InterviewSession) -> None:
    summary = session.summary()
    print("\n" + "=" * 50)
    print("📋 Interview Summary")
    print("=" * 50)
    print(f"Duration: {summary.duration_seconds:.0f}s")
    print(f"Questions asked: {summary.questions_asked}")
    print(f"Your answers: {summary.candidate_turns}")
    if summary.average_score is not None:
        print(f"Average score: {summary.average_score:.1f}")
    for score, feedback in summary.scores:
        if feedback:
            print(f"  • {score if score is not None else '-'}: {feedback}")
    if summary.completion_message:
        print(f"\n{summary.completion_message}")


async def run(session: InterviewSession) -> SessionState:
    async with session:
        await session.start()
        if session.state is SessionState.CONNECTED and session.error:
            print(f"❌ {session.error}")
            return session.state
        return await session.wait_finished()


def main():
    """Command-line interface for a live interview session."""

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    positional = [arg for arg in sys.argv[1:] if not arg.startswith("--")]
    if positional:
        config.token = positional[0]
    if not config.token:
        print("❌ An interview token is required (argument or INTERVIEW_TOKEN).")
        print(USAGE)
        sys.exit(1)

    # TTS configuration with explicit flags taking precedence
    explicit_tts = "--tts" in sys.argv or "--speech" in sys.argv
    explicit_text = "--text" in sys.argv or "--no-tts" in sys.argv
    if explicit_text:
        config.enable_tts = False
    elif explicit_tts:
        config.enable_tts = True

    for arg in sys.argv[1:]:
        if arg.startswith("--url="):
            try:
                config.base_url = validate_base_url(arg.split("=", 1)[1])
            except ValueError as e:
                print(f"❌ {e}")
                sys.exit(1)
        elif arg.startswith("--chunk-seconds="):
            try:
                config.chunk_duration_seconds = float(arg.split("=", 1)[1])
                if config.chunk_duration_seconds <= 0:
                    raise ValueError
            except ValueError:
                print("❌ Invalid chunk duration. Use --chunk-seconds=N with N > 0")
                sys.exit(1)
        elif arg == "--no-video":
            config.enable_video_preview = False
        elif arg in ("--help", "-h"):
            print(USAGE)
            sys.exit(0)

    setup_logging(config.log_file, config.log_level)

    if config.enable_tts:
        print("🔊 TTS Mode: interviewer lines will be spoken aloud (default)")
        print("   (Use --text or --no-tts to disable speech)")
    else:
        print("📝 Text Mode: interviewer lines are shown as text only")
    print(f"🎙️  Streaming audio in {config.chunk_duration_seconds:g}s chunks")
    print(f"📁 Detailed logs: {config.log_file}")

    session = InterviewSession.from_config(config)
    metrics = SessionMetrics()
    session.event_bus.subscribe_all(EventLogger().handle_event)
    session.event_bus.subscribe_all(metrics.handle_event)
    session.event_bus.subscribe(EventType.STATUS_CHANGED, _print_status)
    session.event_bus.subscribe(EventType.TRANSCRIPT_UPDATED, _print_transcript)

    try:
        final_state = asyncio.run(run(session))
    except KeyboardInterrupt:
        print("\n⏹️  Interview stopped")
        sys.exit(130)

    if final_state is SessionState.COMPLETED:
        _print_summary(session)
    elif final_state is SessionState.ERROR:
        print(f"❌ {session.error}")
        sys.exit(1)


if __name__ == "__main__":
    main()
