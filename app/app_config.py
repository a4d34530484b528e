from pydantic import BaseModel

from app.shared.config import config


def _split_csv(value: str | None) -> list[str]:
    return [x.strip() for x in (value or "").split(",") if x.strip()]


class AppEnvironConfig(BaseModel):
    DEBUG: bool = (config.get("DEBUG") or "false").strip().lower() == "true"

    # Access gate: shared secrets accepted by /api/login and as universal payment codes
    ACCESS_CODES: list[str] = _split_csv(config.get("ACCESS_CODES", "bintunet"))
    # Plan granted by a successful login
    LOGIN_PLAN: str = (config.get("LOGIN_PLAN") or "lifetime").strip()

    # Session cookie
    SESSION_COOKIE_NAME: str = (config.get("SESSION_COOKIE_NAME") or "sessionId").strip()
    COOKIE_SECURE: bool = (config.get("COOKIE_SECURE") or "false").strip().lower() == "true"

    # Uploads
    UPLOAD_DIR: str = (config.get("UPLOAD_DIR") or "uploads").strip()
    MAX_UPLOAD_BYTES: int = int((config.get("MAX_UPLOAD_BYTES") or "").strip() or 500 * 1024 * 1024)

    # Transcoder
    FFMPEG_BIN: str = (config.get("FFMPEG_BIN") or "ffmpeg").strip()
    RTMP_URL_TEMPLATE: str = (
        config.get("RTMP_URL_TEMPLATE") or "rtmp://a.rtmp.youtube.com/live2/{key}"
    ).strip()
    PROCESS_STOP_TIMEOUT_SECS: float = float(
        (config.get("PROCESS_STOP_TIMEOUT_SECS") or "").strip() or 5.0
    )

    # Storage backend: "memory" or "mongo"
    STORAGE_BACKEND: str = (config.get("STORAGE_BACKEND") or "memory").strip().lower()

    # HTTP server
    API_CORS_ORIGINS: list[str] = _split_csv(config.get("API_CORS_ORIGINS", "*"))
    API_HOST: str = (config.get("API_HOST") or "0.0.0.0").strip()
    API_PORT: int = int((config.get("API_PORT") or "").strip() or 8000)
    API_WORKERS: int = int((config.get("API_WORKERS") or "").strip() or 1)


_app_environ_config = AppEnvironConfig()


def get_app_environ_config() -> AppEnvironConfig:
    return _app_environ_config
