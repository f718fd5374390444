"""
Unit tests for .env transport configuration
"""
import pytest

from feeder_term.config import TransportConfig, load_transport_config

ENV_KEYS = ("FEEDER_PORT", "FEEDER_BAUD", "FEEDER_TIMEOUT")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Blank FEEDER_* so load_dotenv writes are undone after each test"""
    for key in ENV_KEYS:
        monkeypatch.setenv(key, "")


class TestLoadTransportConfig:

    def test_defaults_without_env_file(self, tmp_path):
        cfg = load_transport_config(tmp_path / "missing.env")
        assert cfg == TransportConfig()

    def test_values_from_env_file(self, tmp_path):
        env = tmp_path / ".env"
        env.write_text("FEEDER_PORT=/dev/ttyACM0\nFEEDER_BAUD=250000\nFEEDER_TIMEOUT=0.25\n")
        cfg = load_transport_config(env)
        assert cfg.port == "/dev/ttyACM0"
        assert cfg.baudrate == 250000
        assert cfg.timeout_s == 0.25

    def test_environment_without_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FEEDER_PORT", "COM4")
        cfg = load_transport_config(tmp_path / "missing.env")
        assert cfg.port == "COM4"
        assert cfg.baudrate == 115200

    def test_invalid_baud(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FEEDER_BAUD", "fast")
        with pytest.raises(ValueError, match="FEEDER_BAUD"):
            load_transport_config(tmp_path / "missing.env")
