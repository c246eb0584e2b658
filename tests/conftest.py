import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    for name in (
        "INTERVIEW_WS_URL", "INTERVIEW_TOKEN", "INTERVIEW_CHUNK_SECONDS",
        "INTERVIEW_ENABLE_TTS", "INTERVIEW_TTS_VOICE", "INTERVIEW_LANGUAGE",
        "INTERVIEW_VIDEO_PREVIEW", "INTERVIEW_INPUT_DEVICE",
        "INTERVIEW_LOG_FILE", "INTERVIEW_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
