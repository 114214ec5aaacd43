"""
Runtime configuration for the Vehicle Listing Scraper.

Everything environment-dependent is read once into a Settings object that is
handed to the app factory. Nothing reads os.environ after startup.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from constants import (
    DEFAULT_ALLOWED_DOMAINS,
    DEFAULT_PORT,
    DEFAULT_USER_AGENT,
    RATE_LIMIT_MAX,
    RATE_LIMIT_WINDOW_MS,
    SCRAPE_ATTEMPTS,
    SCRAPE_TIMEOUT_SECONDS,
)


def parse_domain_list(raw: str) -> tuple[str, ...]:
    """
    Split a comma separated domain list.

    E.g., " Cars.com, ,copart.com " -> ("cars.com", "copart.com")
    """
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


def _env_bool(value: str) -> bool:
    return value.strip().lower() not in ("0", "false", "no", "off")


@dataclass(frozen=True)
class Settings:
    """Service settings. Defaults match an unconfigured deployment."""
    port: int = DEFAULT_PORT
    allowed_domains: tuple[str, ...] = DEFAULT_ALLOWED_DOMAINS
    rate_limit_window_ms: int = RATE_LIMIT_WINDOW_MS
    rate_limit_max: int = RATE_LIMIT_MAX
    scrape_timeout_s: float = SCRAPE_TIMEOUT_SECONDS
    scrape_attempts: int = SCRAPE_ATTEMPTS
    headless: bool = True
    user_agent: str = DEFAULT_USER_AGENT
    log_level: str = "INFO"
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            Settings with every unset variable left at its default

        Raises:
            ValueError: if a numeric variable is not a number
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        domains = defaults.allowed_domains
        if env.get("ALLOWED_DOMAINS"):
            domains = parse_domain_list(env["ALLOWED_DOMAINS"])

        return cls(
            port=int(env.get("PORT") or defaults.port),
            allowed_domains=domains,
            rate_limit_window_ms=int(env.get("RATE_LIMIT_WINDOW_MS") or defaults.rate_limit_window_ms),
            rate_limit_max=int(env.get("RATE_LIMIT_MAX") or defaults.rate_limit_max),
            scrape_timeout_s=float(env.get("SCRAPE_TIMEOUT_SECONDS") or defaults.scrape_timeout_s),
            scrape_attempts=int(env.get("SCRAPE_ATTEMPTS") or defaults.scrape_attempts),
            headless=_env_bool(env.get("BROWSER_HEADLESS", "true")),
            log_level=(env.get("LOG_LEVEL") or defaults.log_level).upper(),
        )
