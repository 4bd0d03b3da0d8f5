"""Voice command - live audio conversation until Ctrl+C or the server hangs up."""

import asyncio

from rich.console import Console

from maktaba.audio import SoundDeviceCapture, SoundDevicePlayback
from maktaba.commands import load_runtime
from maktaba.credentials import CredentialPool
from maktaba.errors import MaktabaError
from maktaba.gemini_live import GeminiLiveConnector
from maktaba.live_session import LiveSessionManager, LiveState
from maktaba.prompts import build_live_instruction

console = Console()

_STATE_LABELS = {
    LiveState.CONNECTING: "[yellow]🔄 Connecting...[/yellow]",
    LiveState.STREAMING: "[green]🎙️  Listening - speak now[/green]",
    LiveState.INTERRUPTED: "[dim]✋ Interrupted[/dim]",
    LiveState.CLOSED: "[dim]Session closed[/dim]",
}


def _volume_bar(volume: float, width: int = 30) -> str:
    filled = min(width, int(volume * width * 4))
    return "█" * filled + "·" * (width - filled)


async def _run_session(manager: LiveSessionManager) -> None:
    try:
        await manager.connect()
        await manager.wait_closed()
    except MaktabaError:
        # manager.error carries the user-facing text
        pass
    finally:
        await manager.disconnect()
    if manager.error:
        console.print(f"[red]❌ {manager.error}[/red]")


def run(args):
    """Run a live voice session."""
    config, catalog = load_runtime(args)
    live = config.get("live", {})

    def on_state(state: LiveState):
        label = _STATE_LABELS.get(state)
        if label:
            console.print(label)

    def on_volume(volume: float):
        console.print(f"\r{_volume_bar(volume)}", end="", markup=False, highlight=False)

    manager = LiveSessionManager(
        pool=CredentialPool.from_config(config),
        connector=GeminiLiveConnector.from_config(config),
        capture=SoundDeviceCapture(
            sample_rate=live.get("capture_sample_rate", 16000),
            block_size=live.get("capture_block_size", 4096),
        ),
        playback=SoundDevicePlayback(sample_rate=live.get("playback_sample_rate", 24000)),
        instruction=build_live_instruction(catalog),
        on_state=on_state,
        on_volume=on_volume,
    )

    console.print(f"[bold]{catalog.bot_name}[/bold] - voice mode (Ctrl+C to stop)")
    try:
        asyncio.run(_run_session(manager))
    except KeyboardInterrupt:
        # asyncio.run cancelled the task; its finally already disconnected
        console.print("\n\n👋 مع السلامة!")
