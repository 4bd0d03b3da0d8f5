"""Gemini Live (realtime audio) connection built on the google-genai SDK."""

from google import genai
from google.genai import types
from websockets.exceptions import ConnectionClosedOK

from maktaba.audio import CAPTURE_SAMPLE_RATE
from maktaba.live_session import AudioFrame, Interrupted, LiveConnection, TurnComplete
from maktaba.logging_config import get_logger

log = get_logger(__name__)

DEFAULT_LIVE_MODEL = "gemini-2.5-flash-native-audio-preview-09-2025"
DEFAULT_VOICE = "Orus"


class GeminiLiveConnection(LiveConnection):
    """Wraps an entered ``client.aio.live.connect`` context."""

    def __init__(self, context, session, capture_sample_rate: int = CAPTURE_SAMPLE_RATE):
        self._context = context
        self._session = session
        self._mime_type = f"audio/pcm;rate={capture_sample_rate}"

    async def send_audio(self, pcm: bytes) -> None:
        await self._session.send_realtime_input(
            audio=types.Blob(data=pcm, mime_type=self._mime_type)
        )

    async def receive(self):
        # session.receive() stops after each turn_complete, so keep re-entering
        # it until the server closes the socket.
        while True:
            got_any = False
            try:
                async for message in self._session.receive():
                    got_any = True
                    for event in _events_from(message):
                        yield event
            except ConnectionClosedOK:
                return
            if not got_any:
                return

    async def close(self) -> None:
        context, self._context = self._context, None
        if context is not None:
            await context.__aexit__(None, None, None)


def _events_from(message):
    content = getattr(message, "server_content", None)
    if content is None:
        return
    turn = content.model_turn
    if turn and turn.parts:
        for part in turn.parts:
            blob = part.inline_data
            if blob and blob.data and (blob.mime_type or "audio/").startswith("audio/"):
                yield AudioFrame(blob.data)
    if content.interrupted:
        yield Interrupted()
    if content.turn_complete:
        yield TurnComplete()


class GeminiLiveConnector:
    """Callable used by :class:`LiveSessionManager` to open one session per key."""

    def __init__(
        self,
        model: str = DEFAULT_LIVE_MODEL,
        voice: str = DEFAULT_VOICE,
        capture_sample_rate: int = CAPTURE_SAMPLE_RATE,
    ):
        self.model = model
        self.voice = voice
        self.capture_sample_rate = capture_sample_rate

    @classmethod
    def from_config(cls, config: dict) -> "GeminiLiveConnector":
        live = config.get("live", {})
        return cls(
            model=live.get("model", DEFAULT_LIVE_MODEL),
            voice=live.get("voice", DEFAULT_VOICE),
            capture_sample_rate=live.get("capture_sample_rate", CAPTURE_SAMPLE_RATE),
        )

    def build_config(self, instruction: str) -> types.LiveConnectConfig:
        return types.LiveConnectConfig(
            response_modalities=[types.Modality.AUDIO],
            system_instruction=types.Content(parts=[types.Part(text=instruction)]),
            speech_config=types.SpeechConfig(
                voice_config=types.VoiceConfig(
                    prebuilt_voice_config=types.PrebuiltVoiceConfig(voice_name=self.voice)
                )
            ),
        )

    async def __call__(self, api_key: str, instruction: str) -> GeminiLiveConnection:
        client = genai.Client(api_key=api_key)
        context = client.aio.live.connect(model=self.model, config=self.build_config(instruction))
        session = await context.__aenter__()
        log.info("Connected to Gemini Live (model=%s, voice=%s)", self.model, self.voice)
        return GeminiLiveConnection(context, session, self.capture_sample_rate)
