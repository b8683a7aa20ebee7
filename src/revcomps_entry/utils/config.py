"""
Configuration management for the RevComps entry automation.

Settings are built once per run from a layered source: values from the
optional ``.env`` file act as defaults and the ambient environment wins.
The resulting ``RunSettings`` object is frozen.
"""

import os
from pathlib import Path
from typing import Dict, List, Mapping, MutableMapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .logger import get_logger

logger = get_logger("config")

DEFAULT_ENV_FILE = ".env"
DEFAULT_RESULT_PATH = ".n8n-result.json"

USERNAME_VAR = "REVCOMPS_USERNAME"
PASSWORD_VAR = "REVCOMPS_PASSWORD"
TEST_MODE_VAR = "REVCOMPS_TEST_MODE"
RESULT_PATH_VAR = "N8N_RESULT_PATH"
STORAGE_STATE_VAR = "REVCOMPS_STORAGE_STATE_PATH"
HEADLESS_VAR = "REVCOMPS_HEADLESS"
RUN_TIMEOUT_VAR = "REVCOMPS_RUN_TIMEOUT"
BASE_URL_VAR = "REVCOMPS_BASE_URL"
ANSWER_VAR = "REVCOMPS_ANSWER"
FREE_FILTER_VAR = "REVCOMPS_FREE_FILTER"

FILTER_STRATEGIES = ("click", "force_click", "dom_click")


class ConfigurationError(ValueError):
    """Raised when the run cannot start because configuration is missing or invalid."""


class Credentials(BaseModel):
    """Site login credentials."""
    model_config = ConfigDict(frozen=True)

    username: str
    password: str

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"

    __str__ = __repr__


class PacingSettings(BaseModel):
    """Random delay windows in milliseconds, as (min, max) inclusive."""
    model_config = ConfigDict(frozen=True)

    page_load: Tuple[int, int] = (300, 900)
    form_step: Tuple[int, int] = (250, 700)
    detail_page: Tuple[int, int] = (400, 1200)
    answer: Tuple[int, int] = (300, 900)
    after_add: Tuple[int, int] = (500, 1500)
    cart: Tuple[int, int] = (500, 1200)
    checkout: Tuple[int, int] = (700, 1400)

    @field_validator('*')
    @classmethod
    def validate_window(cls, value: Tuple[int, int]) -> Tuple[int, int]:
        low, high = value
        if low < 0 or high < low:
            raise ValueError(f"invalid delay window {value}: expected 0 <= min <= max")
        return value


class SiteSelectors(BaseModel):
    """Selectors and marker texts for the RevComps pages."""
    model_config = ConfigDict(frozen=True)

    cookie_accept_button: str = "Accept All"
    login_link: str = "Log In"
    username_field: str = "Username or Email Address"
    password_field: str = "Password"
    login_button: str = "Log In"
    listing: str = "div.qode-pli"
    free_listing: str = 'div.qode-pli:has(div.price_image:has-text("free"))'
    listing_title: str = ".qode-pli-title"
    listing_link: str = "a.qode-pli-link"
    held_ticket_text: str = "YOU HAVE 1 TICKET ON THIS PRIZE"
    limit_reached_text: str = "You cannot purchase anymore tickets"
    question_select: str = "#question_select"
    submit_entry: str = "#submitorder"
    proceed_to_checkout: str = "Proceed to checkout"
    place_order: str = "#place_order"


class FilterSettings(BaseModel):
    """Free-listings filter tab activation."""
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    selector: str = '[data-filter="free"]'
    active_selector: str = (
        '[data-filter="free"].active, [data-filter="free"][aria-selected="true"]'
    )
    strategies: Tuple[str, ...] = FILTER_STRATEGIES
    wait_timeout_ms: int = 3000

    @field_validator('strategies')
    @classmethod
    def validate_strategies(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        unknown = [name for name in value if name not in FILTER_STRATEGIES]
        if unknown:
            raise ValueError(f"unknown filter strategies: {', '.join(unknown)}")
        return value


class RunSettings(BaseModel):
    """Everything a single entry run needs, resolved once at start."""
    model_config = ConfigDict(frozen=True)

    credentials: Credentials
    test_mode: bool = False
    result_path: Path = Path(DEFAULT_RESULT_PATH)
    storage_state_path: Optional[Path] = None
    base_url: str = "https://www.revcomps.com/"
    cart_url: str = "https://www.revcomps.com/cart/"
    headless: bool = True
    answer: str = "london"
    run_timeout: float = 600.0
    pacing: PacingSettings = PacingSettings()
    selectors: SiteSelectors = SiteSelectors()
    filter: FilterSettings = FilterSettings()

    @field_validator('run_timeout')
    @classmethod
    def validate_run_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("run_timeout must be positive")
        return value


def parse_env_line(line: str) -> Optional[Tuple[str, str]]:
    """
    Parse one env file line into (key, value).

    The line is split on the first '='; key and value are trimmed and one
    matching pair of surrounding quotes is removed. Everything else in the
    value (backslashes, '#', inner quotes) is kept as written.

    Returns:
        (key, value), or None for blank, comment and malformed lines
    """
    stripped = line.strip()
    if not stripped or stripped.startswith('#'):
        return None

    key, separator, value = stripped.partition('=')
    key = key.strip()
    if not separator or not key:
        return None

    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        value = value[1:-1]
    return key, value


def read_env_file(env_path: str = DEFAULT_ENV_FILE) -> Dict[str, str]:
    """
    Parse KEY=VALUE pairs from an env file.

    Args:
        env_path: Path to the env file

    Returns:
        Parsed pairs, empty when the file does not exist
    """
    path = Path(env_path)
    if not path.is_file():
        logger.debug(f"No env file at {path}")
        return {}

    values = {}
    for number, line in enumerate(path.read_text(encoding='utf-8').splitlines(), start=1):
        parsed = parse_env_line(line)
        if parsed is None:
            if line.strip() and not line.strip().startswith('#'):
                logger.debug(f"Skipping malformed line {number} in {path}")
            continue
        key, value = parsed
        values[key] = value
    return values


def load_env_file(env_path: str = DEFAULT_ENV_FILE,
                  environ: Optional[MutableMapping[str, str]] = None) -> Dict[str, str]:
    """
    Seed an environment mapping from an env file.

    Keys that already hold a non-empty value are left untouched.

    Args:
        env_path: Path to the env file
        environ: Mapping to seed, defaults to ``os.environ``

    Returns:
        The pairs that were actually set
    """
    target = os.environ if environ is None else environ
    applied = {}
    for key, value in read_env_file(env_path).items():
        if not target.get(key):
            target[key] = value
            applied[key] = value
    return applied


def layered_environment(env_path: str = DEFAULT_ENV_FILE,
                        environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Merge env file defaults with the ambient environment without mutating either.

    Args:
        env_path: Path to the env file
        environ: Ambient environment, defaults to ``os.environ``

    Returns:
        Merged mapping where non-empty ambient values take precedence
    """
    ambient = os.environ if environ is None else environ
    merged = read_env_file(env_path)
    merged.update({key: value for key, value in ambient.items() if value})
    return merged


def parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse a flag: case-insensitive "true" or literal "1" are true."""
    if value is None or value.strip() == "":
        return default
    value = value.strip()
    return value.lower() == "true" or value == "1"


def load_settings(env_path: str = DEFAULT_ENV_FILE,
                  environ: Optional[Mapping[str, str]] = None,
                  **overrides) -> RunSettings:
    """
    Build the run settings from the env file and ambient environment.

    Args:
        env_path: Path to the env file
        environ: Ambient environment, defaults to ``os.environ``
        **overrides: Explicit RunSettings fields (e.g. from the CLI) applied last

    Returns:
        Frozen RunSettings

    Raises:
        ConfigurationError: If credentials are missing or a value is invalid
    """
    env = layered_environment(env_path, environ)

    username = env.get(USERNAME_VAR, "").strip()
    password = env.get(PASSWORD_VAR, "")
    if not username or not password:
        raise ConfigurationError(
            f"Missing {USERNAME_VAR} or {PASSWORD_VAR} in environment or {env_path}."
        )

    fields = {
        'credentials': Credentials(username=username, password=password),
        'test_mode': parse_bool(env.get(TEST_MODE_VAR)),
        'headless': parse_bool(env.get(HEADLESS_VAR), default=True),
        'result_path': Path(env.get(RESULT_PATH_VAR) or DEFAULT_RESULT_PATH).resolve(),
        'filter': FilterSettings(enabled=parse_bool(env.get(FREE_FILTER_VAR), default=True)),
    }

    if env.get(STORAGE_STATE_VAR):
        fields['storage_state_path'] = Path(env[STORAGE_STATE_VAR]).resolve()
    if env.get(BASE_URL_VAR):
        base_url = env[BASE_URL_VAR].rstrip('/') + '/'
        fields['base_url'] = base_url
        fields['cart_url'] = base_url + 'cart/'
    if env.get(ANSWER_VAR):
        fields['answer'] = env[ANSWER_VAR]
    if env.get(RUN_TIMEOUT_VAR):
        fields['run_timeout'] = env[RUN_TIMEOUT_VAR]

    fields.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return RunSettings(**fields)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def describe_settings(settings: RunSettings) -> List[str]:
    """Human-readable summary lines of the non-secret settings."""
    return [
        f"Account: {settings.credentials.username}",
        f"Test mode: {settings.test_mode}",
        f"Result path: {settings.result_path}",
        f"Session state: {settings.storage_state_path or 'disabled'}",
        f"Headless: {settings.headless}",
        f"Free filter activation: {settings.filter.enabled}",
    ]
