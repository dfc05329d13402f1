"""Settings: process environment > .env > config.json > defaults."""
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import dotenv_values

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ENV_FILE = Path(".env")
DEFAULT_CONFIG_FILE = Path("config.json")
DEFAULT_LOGIN_URL = "https://www.educoder.net/"
DEFAULT_COURSE_NAME = "机器学习"

_TRUE = {"1", "true", "yes", "y"}


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str

    def masked(self) -> str:
        return mask_identifier(self.username)

    def __repr__(self) -> str:
        return f"Credentials(username={self.masked()!r})"


@dataclass(frozen=True)
class Timeouts:
    """All values in milliseconds."""

    page_load: int = 20000
    element_wait: int = 10000
    click: int = 8000
    level_buffer: int = 3000
    probe: int = 3000
    evaluation: int = 60000
    popup: int = 15000
    captcha: int = 60000
    login_result: int = 30000
    login_error_grace: int = 30000
    login_deadline: int = 60000
    editor_settle: int = 5000


@dataclass(frozen=True)
class Settings:
    target: Credentials
    source: Optional[Credentials] = None
    course_name: str = DEFAULT_COURSE_NAME
    course_url: Optional[str] = None
    login_url: str = DEFAULT_LOGIN_URL
    headless: bool = False
    browser_type: str = "chromium"
    timeouts: Timeouts = field(default_factory=Timeouts)
    tolerate_divergence: bool = True

    def require_dual(self) -> Credentials:
        """Return source credentials or fail: dual-copy mode needs both accounts."""
        if self.source is None:
            raise ConfigError(
                "source account missing: set EDUCODER_COMPLETE_USERNAME and EDUCODER_COMPLETE_PASSWORD"
            )
        return self.source


def mask_identifier(value: Optional[str]) -> str:
    """Mask a login id for logs: phone 138****5678, mail ab***@host, else a***z."""
    if not value:
        return ""
    s = str(value)
    if re.fullmatch(r"\d{11}", s):
        return f"{s[:3]}****{s[-4:]}"
    if "@" in s:
        local, domain = s.split("@", 1)
        masked_local = f"{local[:1]}*" if len(local) <= 2 else f"{local[:2]}***"
        return f"{masked_local}@{domain}"
    if len(s) <= 2:
        return f"*{s[-1]}"
    return f"{s[0]}***{s[-1]}"


def parse_bool(value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE


def parse_number(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric value %r (using %s)", value, default)
        return default


def _load_config_file(path: Path) -> dict:
    if not path.exists():
        logger.info("No %s found; using environment configuration", path)
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not parse %s, ignoring it: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("%s is not a JSON object, ignoring it", path)
        return {}
    logger.info("Loaded %s", path)
    return data


def load_settings(
    env_file: Optional[Path] = None,
    config_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """
    Build Settings. The process environment wins over the .env file, which wins over
    config.json; anything still missing takes the built-in default.
    """
    env_path = env_file if env_file is not None else DEFAULT_ENV_FILE
    file_env = {k: v for k, v in dotenv_values(env_path).items() if v is not None} if env_path.exists() else {}
    env: dict[str, str] = {**file_env, **(os.environ if environ is None else environ)}
    cfg = _load_config_file(config_file if config_file is not None else DEFAULT_CONFIG_FILE)

    edu = cfg.get("educoder") or {}
    browser = cfg.get("browser") or {}
    timeout = cfg.get("timeout") or {}
    mirror = cfg.get("mirror") or {}

    def pick(env_key: str, section: dict, key: str, default: Any = None) -> Any:
        if env.get(env_key) not in (None, ""):
            return env[env_key]
        if section.get(key) not in (None, ""):
            return section[key]
        return default

    username = pick("EDUCODER_USERNAME", edu, "username", "")
    password = pick("EDUCODER_PASSWORD", edu, "password", "")
    if not username or not password:
        raise ConfigError("target account missing: set EDUCODER_USERNAME and EDUCODER_PASSWORD")

    source = None
    complete_username = pick("EDUCODER_COMPLETE_USERNAME", edu, "completeUsername", "")
    complete_password = pick("EDUCODER_COMPLETE_PASSWORD", edu, "completePassword", "")
    if complete_username and complete_password:
        source = Credentials(str(complete_username), str(complete_password))

    defaults = Timeouts()
    timeouts = Timeouts(
        page_load=parse_number(pick("TIMEOUT_PAGE_LOAD", timeout, "pageLoad"), defaults.page_load),
        element_wait=parse_number(pick("TIMEOUT_ELEMENT_WAIT", timeout, "elementWait"), defaults.element_wait),
        click=parse_number(pick("TIMEOUT_CLICK_TIMEOUT", timeout, "clickTimeout"), defaults.click),
        level_buffer=parse_number(pick("TIMEOUT_LEVEL_WAIT", timeout, "levelWait"), defaults.level_buffer),
        probe=parse_number(pick("TIMEOUT_PROBE", timeout, "probe"), defaults.probe),
        evaluation=parse_number(pick("TIMEOUT_EVALUATION", timeout, "evaluation"), defaults.evaluation),
        popup=parse_number(pick("TIMEOUT_POPUP", timeout, "popup"), defaults.popup),
        captcha=parse_number(pick("TIMEOUT_CAPTCHA", timeout, "captcha"), defaults.captcha),
        login_result=parse_number(pick("TIMEOUT_LOGIN_RESULT", timeout, "loginResult"), defaults.login_result),
        login_error_grace=parse_number(
            pick("TIMEOUT_LOGIN_ERROR_GRACE", timeout, "loginErrorGrace"), defaults.login_error_grace
        ),
        login_deadline=parse_number(pick("TIMEOUT_LOGIN_DEADLINE", timeout, "loginDeadline"), defaults.login_deadline),
        editor_settle=parse_number(pick("TIMEOUT_EDITOR_SETTLE", timeout, "editorSettle"), defaults.editor_settle),
    )

    settings = Settings(
        target=Credentials(str(username), str(password)),
        source=source,
        course_name=str(pick("EDUCODER_COURSE_NAME", edu, "courseName", DEFAULT_COURSE_NAME)),
        course_url=pick("EDUCODER_COURSE_URL", edu, "courseUrl") or None,
        login_url=str(pick("EDUCODER_LOGIN_URL", edu, "loginUrl", DEFAULT_LOGIN_URL)),
        headless=parse_bool(pick("BROWSER_HEADLESS", browser, "headless"), False),
        browser_type=str(pick("BROWSER_TYPE", browser, "type", "chromium")),
        timeouts=timeouts,
        tolerate_divergence=parse_bool(pick("MIRROR_TOLERATE_DIVERGENCE", mirror, "tolerateDivergence"), True),
    )
    logger.debug(
        "Settings loaded: target=%s source=%s course=%r headless=%s",
        settings.target.masked(),
        settings.source.masked() if settings.source else None,
        settings.course_name,
        settings.headless,
    )
    return settings
