"""
Helios Testnet Onboarding - Main Entry Point

Onboards every wallet in the private-key list against the Helios testnet:
signs the verification message, logs in (registering when needed), walks
the onboarding tasks, claims faucet tokens and the completion reward, and
reports the balance change.

Usage:
    python main.py

Inputs (paths configurable through .env):
    privatekeys.txt   one private key per line (required)
    proxies.txt       one proxy per line, host:port or scheme://... (optional)

Exit codes:
    0  normal completion or interrupted by the user
    1  missing/empty key file, or an uncaught fatal error
"""
from dotenv import load_dotenv

# Load environment variables from .env file into os.environ
load_dotenv()

import asyncio
import logging
import sys
from typing import List, Optional

from core.config import BotSettings
from core.logging_setup import setup_logging
from core.monitoring import RunReporter
from core.orchestrator import BatchOrchestrator, BatchSummary
from core.proxy_manager import ProxyRotator
from core.wallet_manager import KeyFileError, load_private_keys
from helios.account import build_account_runner

logger = logging.getLogger(__name__)


async def run_batch(
    settings: BotSettings,
    private_keys: List[str],
    proxy_rotator: ProxyRotator,
    invite_code: Optional[str],
    reporter: RunReporter,
) -> BatchSummary:
    """Wire the pipeline and process every key sequentially."""
    runner = build_account_runner(settings, proxy_rotator)
    orchestrator = BatchOrchestrator(settings, runner, reporter)
    try:
        return await orchestrator.run(private_keys, invite_code)
    finally:
        await runner.close()


def main() -> int:
    """
    Process entry point.

    1. Loads settings and configures logging.
    2. Reads the key list (fatal if missing or empty) and the proxy list.
    3. Prompts once for an invite code.
    4. Runs the batch and reports the result.
    """
    settings = BotSettings()
    setup_logging(settings.log_level, settings.log_file)

    try:
        private_keys = load_private_keys(settings.private_keys_file)
    except KeyFileError as e:
        logger.error("❌ %s", e)
        return 1

    proxy_rotator = ProxyRotator.from_file(settings.proxies_file)
    reporter = RunReporter(settings, proxy_count=len(proxy_rotator))

    try:
        invite_code = reporter.prompt_invite_code()
        reporter.show_banner()
        asyncio.run(
            run_batch(settings, private_keys, proxy_rotator, invite_code, reporter)
        )
    except KeyboardInterrupt:
        logger.warning("⚠️ Process interrupted by user")
        return 0
    except Exception:
        logger.exception("❌ Uncaught fatal error")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
