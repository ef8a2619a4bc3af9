"""Application configuration for the Helios onboarding bot.

Settings are loaded from environment variables (with ``.env`` file support)
through Pydantic v2 ``BaseSettings``.  Every delay used by the onboarding
flow lives here so a run can be slowed down, sped up or (in tests) zeroed
without touching the flow itself.

Key exports:
    BotSettings: Root settings model (instantiate once per process).
    BASE_DIR / LOGS_DIR: Canonical project paths.
"""

# pylint: disable=no-member

import logging
from pathlib import Path
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Base Paths
# ---------------------------------------------------------------------------
BASE_DIR: Path = Path(__file__).parent.parent
"""Project root directory (parent of ``core/``)."""

LOGS_DIR: Path = BASE_DIR / "logs"
"""Directory for log output files."""

logger: logging.Logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class BotSettings(BaseSettings):
    """Root configuration model for the Helios onboarding bot.

    All fields can be set via environment variables or a ``.env`` file
    (e.g. ``API_BASE_URL``, ``STEP_PACING_DELAY_MS``).

    Section overview:
        * **Core** -- log level and log file.
        * **Network** -- REST base URL, RPC endpoint, chain metadata.
        * **HTTP** -- browser-like headers and per-call timeout.
        * **Inputs** -- private-key and proxy list files.
        * **Retry** -- attempt budgets and backoff bases (ms).
        * **Pacing** -- settle / pacing / inter-account delays (ms).
        * **Onboarding** -- faucet request and reward claim parameters.
    """

    # Core
    log_level: str = "INFO"
    log_file: str = str(LOGS_DIR / "helios_bot.log")

    # Network
    api_base_url: str = "https://testnet-api.helioschain.network/api"
    rpc_url: str = "https://testnet1.helioschainlabs.org"
    chain_id: int = 42000
    network_name: str = "Helios"
    currency_symbol: str = "HELIOS"
    explorer_url: str = "https://explorer.helioschainlabs.org/"

    # HTTP
    app_origin: str = "https://testnet.helioschain.network"
    app_referer: str = "https://testnet.helioschain.network/"
    user_agent: str = DEFAULT_USER_AGENT
    # Per-call timeout; nothing above this bounds a hung call
    request_timeout_seconds: float = 30.0

    # Inputs (one entry per line, blank lines ignored)
    private_keys_file: str = "privatekeys.txt"
    proxies_file: str = "proxies.txt"

    # Retry
    retry_max_attempts: int = 3
    retry_base_delay_ms: int = 1000
    # Registration gets the larger budget
    registration_max_attempts: int = 5
    registration_base_delay_ms: int = 2000
    retry_jitter_ms: int = 1000

    # Pacing
    step_settle_delay_ms: int = 2000
    faucet_settle_delay_ms: int = 2000
    step_pacing_delay_ms: int = 3000
    account_delay_ms: int = 5000

    # Onboarding
    faucet_token: str = "HLS"
    faucet_chain: str = "helios-testnet"
    faucet_amount: float = 1
    reward_type: str = "xp"
    verification_message: str = (
        "Welcome to Helios! Please sign this message to verify "
        "your wallet ownership.\n\nWallet: {address}"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Normalise URL fields after Pydantic model construction.

        Paths in the REST table always start with ``/``, so a trailing
        slash on ``api_base_url`` is stripped once here.
        """
        self.api_base_url = self.api_base_url.rstrip("/")
        if self.retry_max_attempts < 1:
            logger.warning(
                "retry_max_attempts=%s is below 1; using 1",
                self.retry_max_attempts,
            )
            self.retry_max_attempts = 1
        if self.registration_max_attempts < 1:
            logger.warning(
                "registration_max_attempts=%s is below 1; using 1",
                self.registration_max_attempts,
            )
            self.registration_max_attempts = 1

    def format_verification_message(self, address: str) -> str:
        """Return the challenge string a wallet signs to log in.

        Args:
            address: Checksummed wallet address.

        Returns:
            The verification message with the address filled in.
        """
        return self.verification_message.format(address=address)
