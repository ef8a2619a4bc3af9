"""Single-account run: derive, authenticate, onboard, report.

:class:`AccountRunner` is the only place that contains failures
wholesale.  Whatever goes wrong for one wallet becomes a failed
:class:`AccountOutcome`; it never reaches the batch loop.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from core.config import BotSettings
from core.http_client import ResilientHttpClient
from core.proxy_manager import ProxyRotator, mask_proxy
from core.retry import RetryPolicy
from core.utils import short_address
from core.wallet_manager import ChainGateway
from helios.api import HeliosApi
from helios.auth import AuthBootstrap
from helios.onboarding import OnboardingStateMachine

logger = logging.getLogger(__name__)


@dataclass
class AccountOutcome:
    """Terminal result of one account run.

    Attributes:
        address: Wallet address, or ``"Unknown"`` if derivation failed.
        success: Whether the run reached the final balance check.
        initial_balance: Balance before the run (display units).
        final_balance: Balance after the run (display units).
        completed_step_count: Steps the remote side reports complete.
        is_complete: Remote onboarding-complete flag.
        reward_claimed: Whether the reward claim call succeeded.
        user_id: Backend user id, known only after a registration.
        referral_code: Referral code, known only after a registration.
        error_message: Failure description for unsuccessful runs.
        api_response: Raw API error payload, if the failure carried one.
    """

    address: str
    success: bool
    initial_balance: Decimal = Decimal(0)
    final_balance: Decimal = Decimal(0)
    completed_step_count: int = 0
    is_complete: bool = False
    reward_claimed: bool = False
    user_id: Optional[str] = None
    referral_code: Optional[str] = None
    error_message: Optional[str] = None
    api_response: Any = None

    @property
    def balance_delta(self) -> Decimal:
        return self.final_balance - self.initial_balance

    def format_delta(self, places: int = 6) -> str:
        """Signed balance delta, e.g. ``+0.500000`` or ``-0.000021``."""
        return f"{self.balance_delta:+.{places}f}"


class AccountRunner:
    """Run the full onboarding pipeline for one wallet at a time.

    Args:
        settings: Bot-wide configuration.
        chain: Key derivation, signing and balance reads.
        auth: Session bootstrap.
        onboarding: Onboarding step driver.
        retry_policy: Policy balance reads run under.
        http: REST transport closed together with the runner.
    """

    def __init__(
        self,
        settings: BotSettings,
        chain: ChainGateway,
        auth: AuthBootstrap,
        onboarding: OnboardingStateMachine,
        retry_policy: RetryPolicy,
        http: Optional[ResilientHttpClient] = None,
    ) -> None:
        self.settings = settings
        self.chain = chain
        self.auth = auth
        self.onboarding = onboarding
        self.retry = retry_policy
        self.http = http

    async def read_balance(self, address: str) -> Decimal:
        """Native balance in display units; ``0`` if the read fails."""
        try:
            return await self.retry.execute(
                lambda: self.chain.get_balance(address),
                label="eth_getBalance",
            )
        except Exception as e:
            logger.warning(
                "[%s] ⚠️ Balance read failed, reporting 0 (%s)",
                short_address(address), e,
            )
            return Decimal(0)

    async def run(
        self, private_key: str, invite_code: Optional[str] = None,
    ) -> AccountOutcome:
        """Onboard the wallet behind *private_key*.

        Never raises: any failure yields ``success=False`` with the
        error message and raw API payload.
        """
        address = "Unknown"
        initial_balance = Decimal(0)
        try:
            wallet = self.chain.derive_wallet(private_key)
            address = wallet.address
            tag = short_address(address)
            logger.info("[%s] 🔐 Wallet loaded: %s", tag, address)

            initial_balance = await self.read_balance(address)
            logger.info(
                "[%s] 💳 Initial balance: %s %s",
                tag, initial_balance, self.settings.currency_symbol,
            )
            logger.info("[%s] 🌐 RPC proxy: %s", tag, mask_proxy(self.chain.proxy))

            signature = self.chain.sign_verification_message(wallet)
            logger.info("[%s] ✅ Message signed successfully", tag)

            session = await self.auth.authenticate(address, signature, invite_code)
            logger.info(
                "[%s] 👤 User ID: %s | Referral code: %s",
                tag, session.user_id or "N/A", session.referral_code or "N/A",
            )

            result = await self.onboarding.run(session)

            final_balance = await self.read_balance(address)
            outcome = AccountOutcome(
                address=address,
                success=True,
                initial_balance=initial_balance,
                final_balance=final_balance,
                completed_step_count=len(result.progress.completed_steps),
                is_complete=result.progress.is_onboarding_complete,
                reward_claimed=result.reward_claimed,
                user_id=session.user_id,
                referral_code=session.referral_code,
            )
            logger.info(
                "[%s] 💰 Final balance: %s %s (%s)",
                tag, final_balance, self.settings.currency_symbol,
                outcome.format_delta(),
            )
            return outcome
        except Exception as e:
            logger.error("[%s] ❌ Process failed: %s", short_address(address), e)
            logger.debug("Account run traceback", exc_info=True)
            return AccountOutcome(
                address=address,
                success=False,
                initial_balance=initial_balance,
                final_balance=initial_balance,
                error_message=str(e) or type(e).__name__,
                api_response=getattr(e, "payload", None),
            )

    async def close(self) -> None:
        if self.http:
            await self.http.close()
        await self.chain.close()


def build_account_runner(
    settings: BotSettings, proxy_rotator: ProxyRotator,
) -> AccountRunner:
    """Wire an :class:`AccountRunner` and its collaborators.

    The HTTP client and the chain gateway share one proxy rotator and are
    both registered with the retry policy, so a retry moves every
    outbound connection to the next proxy.
    """
    initial_proxy = proxy_rotator.next()
    http = ResilientHttpClient(settings, proxy=initial_proxy)
    chain = ChainGateway(settings, proxy=initial_proxy)
    retry_policy = RetryPolicy(
        proxy_rotator,
        max_attempts=settings.retry_max_attempts,
        base_delay_ms=settings.retry_base_delay_ms,
        jitter_ms=settings.retry_jitter_ms,
        connections=[http, chain],
    )
    api = HeliosApi(settings, http, retry_policy, proxy_rotator)
    return AccountRunner(
        settings,
        chain=chain,
        auth=AuthBootstrap(api),
        onboarding=OnboardingStateMachine(api, settings),
        retry_policy=retry_policy,
        http=http,
    )
