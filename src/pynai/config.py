"""Engine configuration for pynai."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pynai.exceptions import NaiConfigError

#: Providers the UI slice accepts as "current provider".
DEFAULT_PROVIDERS: tuple[str, ...] = ("openai", "openrouter", "ollama", "google")

#: Braille spinner used by progress indicators.
DEFAULT_SPINNER_FRAMES: tuple[str, ...] = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class NaiConfig:
    """Engine configuration.

    Parameters
    ----------
    active_provider : str
        Provider selected at startup. Must be one of ``providers``.
    model : str
        Model selected at startup.
    providers : tuple[str, ...]
        Provider names the UI slice accepts.
    spinner_interval : float
        Seconds between progress indicator ticks.
    spinner_frames : tuple[str, ...]
        Animation frames cycled by progress indicators.
    web_timeout : float
        Total timeout in seconds for ``>>> web`` fetches.
    web_max_content_length : int
        Fetched page text is truncated to this many characters.
    tree_command : str
        Executable used by ``>>> tree`` blocks.
    debug : bool
        Emit extra DEBUG logging for expansions.
    """

    active_provider: str = "openrouter"
    model: str = "google/gemini-2.0-flash-001"
    providers: tuple[str, ...] = DEFAULT_PROVIDERS
    spinner_interval: float = 0.12
    spinner_frames: tuple[str, ...] = DEFAULT_SPINNER_FRAMES
    web_timeout: float = 30.0
    web_max_content_length: int = 100_000
    tree_command: str = "tree"
    debug: bool = False

    def __post_init__(self) -> None:
        if self.active_provider not in self.providers:
            raise NaiConfigError(
                f"Provider '{self.active_provider}' not recognized. Valid: {', '.join(self.providers)}"
            )
        if not self.model:
            raise NaiConfigError("model must be non-empty")
        if self.spinner_interval <= 0:
            raise NaiConfigError("spinner_interval must be positive")
        if not self.spinner_frames:
            raise NaiConfigError("spinner_frames must not be empty")
        if self.web_max_content_length <= 0:
            raise NaiConfigError("web_max_content_length must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> NaiConfig:
        """Create configuration from environment variables.

        Reads optional ``NAI_*`` variables. Explicit keyword arguments
        override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        NaiConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "NAI_PROVIDER": "active_provider",
            "NAI_MODEL": "model",
            "NAI_TREE_COMMAND": "tree_command",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        providers_env = env.get("NAI_PROVIDERS")
        if providers_env is not None and "providers" not in overrides:
            config_kwargs["providers"] = tuple(p.strip() for p in providers_env.split(",") if p.strip())

        try:
            interval_env = env.get("NAI_SPINNER_INTERVAL")
            if interval_env is not None and "spinner_interval" not in overrides:
                config_kwargs["spinner_interval"] = float(interval_env)

            timeout_env = env.get("NAI_WEB_TIMEOUT")
            if timeout_env is not None and "web_timeout" not in overrides:
                config_kwargs["web_timeout"] = float(timeout_env)

            length_env = env.get("NAI_WEB_MAX_CONTENT_LENGTH")
            if length_env is not None and "web_max_content_length" not in overrides:
                config_kwargs["web_max_content_length"] = int(length_env)
        except ValueError as exc:
            raise NaiConfigError(f"Invalid numeric NAI_* setting: {exc}") from exc

        if "debug" not in overrides:
            config_kwargs["debug"] = _env_bool(env.get("NAI_DEBUG"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
