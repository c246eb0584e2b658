import pytest

from livepanel.config import Config, get_config, validate_base_url


def test_defaults():
    config = get_config()
    assert config.base_url == "ws://localhost:8000"
    assert config.chunk_duration_seconds == 10.0
    assert config.chunk_size == 160000
    assert config.analyzing_debounce_seconds == 2.0
    assert config.token is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("INTERVIEW_WS_URL", "wss://interviews.example.com/")
    monkeypatch.setenv("INTERVIEW_TOKEN", "tok")
    monkeypatch.setenv("INTERVIEW_CHUNK_SECONDS", "5")
    monkeypatch.setenv("INTERVIEW_ENABLE_TTS", "false")
    monkeypatch.setenv("INTERVIEW_INPUT_DEVICE", "3")
    monkeypatch.setenv("INTERVIEW_LOG_LEVEL", "debug")

    config = get_config()

    assert config.base_url == "wss://interviews.example.com"
    assert config.token == "tok"
    assert config.chunk_size == 80000
    assert config.enable_tts is False
    assert config.input_device == 3
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize("name,value", [
    ("INTERVIEW_WS_URL", "http://localhost:8000"),
    ("INTERVIEW_CHUNK_SECONDS", "0"),
    ("INTERVIEW_CHUNK_SECONDS", "ten"),
    ("INTERVIEW_ENABLE_TTS", "maybe"),
    ("INTERVIEW_INPUT_DEVICE", "first"),
])
def test_invalid_values_raise(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError):
        get_config()


def test_validate_base_url():
    assert validate_base_url("ws://h:1/") == "ws://h:1"
    with pytest.raises(ValueError):
        validate_base_url("localhost:8000")


def test_chunk_size_is_derived():
    assert Config(sample_rate=8000, chunk_duration_seconds=2.5).chunk_size == 20000
