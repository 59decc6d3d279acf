"""Load settings.yaml into typed dataclasses. Applies env overrides at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

TEXT_MODES = ("cumulative", "delta")


@dataclass
class BackendConfig:
    base_url: str
    stream_path: str
    num_results: int
    timeout_sec: float
    charset: str = "utf-8"
    base_url_env: str | None = None

    @property
    def stream_url(self) -> str:
        return self.base_url.rstrip("/") + "/" + self.stream_path.lstrip("/")


@dataclass
class StreamingConfig:
    debounce_ms: int
    text_mode: str = "cumulative"
    dual_default: bool = True


@dataclass
class TonesConfig:
    a: str
    b: str


@dataclass
class AppConfig:
    backend: BackendConfig
    streaming: StreamingConfig
    tones: TonesConfig
    overrides: list[str] = field(default_factory=list)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing, ValueError on an
    unknown streaming.text_mode. The backend URL may be overridden by the
    environment variable named in backend.base_url_env.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    overrides: list[str] = []

    backend_raw = raw["backend"]
    base_url = str(backend_raw["base_url"])
    base_url_env = backend_raw.get("base_url_env")
    if base_url_env:
        env_url = os.environ.get(base_url_env, "").strip()
        if env_url:
            base_url = env_url
            overrides.append(base_url_env)
            logger.info("Backend URL overridden by %s: %s", base_url_env, base_url)

    backend = BackendConfig(
        base_url=base_url,
        stream_path=str(backend_raw["stream_path"]),
        num_results=int(backend_raw["num_results"]),
        timeout_sec=float(backend_raw["timeout_sec"]),
        charset=str(backend_raw.get("charset", "utf-8")),
        base_url_env=base_url_env,
    )

    streaming_raw = raw["streaming"]
    text_mode = str(streaming_raw.get("text_mode", "cumulative"))
    if text_mode not in TEXT_MODES:
        raise ValueError(f"Invalid streaming.text_mode {text_mode!r}, expected one of {TEXT_MODES}")
    streaming = StreamingConfig(
        debounce_ms=int(streaming_raw["debounce_ms"]),
        text_mode=text_mode,
        dual_default=bool(streaming_raw.get("dual_default", True)),
    )

    tones_raw = raw["tones"]
    tones = TonesConfig(a=str(tones_raw["a"]), b=str(tones_raw["b"]))

    return AppConfig(
        backend=backend,
        streaming=streaming,
        tones=tones,
        overrides=overrides,
    )
