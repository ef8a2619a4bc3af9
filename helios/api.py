"""Typed calls against the Helios testnet REST API.

Every call binds a fresh proxy from the rotator (one per logical call)
and runs through :class:`~core.retry.RetryPolicy`, which rotates again on
each retry.  Registration gets the larger retry budget.

| Call           | Method/Path                           | Auth   |
|----------------|---------------------------------------|--------|
| login          | POST /users/login                     | none   |
| confirm        | POST /users/confirm-account           | none   |
| progress       | GET  /users/onboarding/progress       | bearer |
| start step     | POST /users/onboarding/start          | bearer |
| complete step  | POST /users/onboarding/complete       | bearer |
| faucet         | POST /faucet/request                  | bearer |
| claim reward   | POST /users/onboarding/claim-reward   | bearer |
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.config import BotSettings
from core.http_client import ApiError, ResilientHttpClient
from core.proxy_manager import ProxyRotator, mask_proxy
from core.retry import RetryPolicy

logger = logging.getLogger(__name__)


class RegistrationError(ApiError):
    """confirm-account answered without ``success: true``."""


class RegistrationResult(BaseModel):
    """Successful confirm-account response."""

    model_config = ConfigDict(extra="ignore")

    token: Optional[str] = None
    user_id: Optional[str] = None
    referral_code: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RegistrationResult":
        user = payload.get("user") or {}
        return cls(
            token=payload.get("token"),
            user_id=user.get("_id"),
            referral_code=user.get("referralCode"),
        )


class OnboardingProgress(BaseModel):
    """Remote onboarding state for the authenticated user.

    Always fetched fresh; never patched locally.
    """

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    completed_steps: List[str] = Field(default_factory=list, alias="completedSteps")
    is_onboarding_complete: bool = Field(default=False, alias="isOnboardingComplete")

    @field_validator("completed_steps", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("is_onboarding_complete", mode="before")
    @classmethod
    def _none_as_false(cls, value: Any) -> Any:
        return False if value is None else value

    def is_completed(self, step_key: str) -> bool:
        return step_key in self.completed_steps


class HeliosApi:
    """REST surface of the Helios testnet backend.

    Args:
        settings: Bot-wide configuration.
        http: Transport the calls are sent through.
        retry_policy: Policy every call runs under.
        proxy_rotator: Source of the proxy bound at the start of a call.
    """

    def __init__(
        self,
        settings: BotSettings,
        http: ResilientHttpClient,
        retry_policy: RetryPolicy,
        proxy_rotator: ProxyRotator,
    ) -> None:
        self.settings = settings
        self.http = http
        self.retry = retry_policy
        self.proxies = proxy_rotator

    async def _call(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        token: Optional[str] = None,
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
    ) -> Any:
        if self.proxies:
            proxy = self.proxies.next()
            self.http.bind_proxy(proxy)
            logger.debug("%s %s via %s", method, path, mask_proxy(proxy))
        return await self.retry.execute(
            lambda: self.http.request(method, path, json=json, token=token),
            max_attempts=max_attempts,
            base_delay_ms=base_delay_ms,
            label=f"{method} {path}",
        )

    async def login(self, wallet: str, signature: str) -> Optional[str]:
        """Log an existing user in.

        Returns:
            The session token, or ``None`` if the response carries none.

        Raises:
            ApiError: 401/404 for unknown wallets, or any other failure.
        """
        data = await self._call(
            "POST", "/users/login",
            json={"wallet": wallet, "signature": signature},
        )
        if isinstance(data, dict):
            return data.get("token")
        return None

    async def confirm_account(
        self, wallet: str, signature: str, invite_code: Optional[str],
    ) -> RegistrationResult:
        """Register *wallet*, optionally with an invite code.

        Raises:
            RegistrationError: If the backend answers without success.
            ApiError: On any transport or HTTP failure.
        """
        data = await self._call(
            "POST", "/users/confirm-account",
            json={"wallet": wallet, "signature": signature, "inviteCode": invite_code},
            max_attempts=self.settings.registration_max_attempts,
            base_delay_ms=self.settings.registration_base_delay_ms,
        )
        if not isinstance(data, dict) or not data.get("success"):
            message = data.get("message") if isinstance(data, dict) else None
            raise RegistrationError(message or "Unknown error", payload=data)
        return RegistrationResult.from_payload(data)

    async def get_onboarding_progress(self, token: str) -> OnboardingProgress:
        data = await self._call("GET", "/users/onboarding/progress", token=token)
        return OnboardingProgress.model_validate(data if isinstance(data, dict) else {})

    async def start_onboarding_step(self, token: str, step_key: str) -> Any:
        return await self._call(
            "POST", "/users/onboarding/start",
            json={"stepKey": step_key}, token=token,
        )

    async def complete_onboarding_step(
        self, token: str, step_key: str, evidence: str,
    ) -> Any:
        return await self._call(
            "POST", "/users/onboarding/complete",
            json={"stepKey": step_key, "evidence": evidence}, token=token,
        )

    async def request_faucet_tokens(
        self,
        token: str,
        chain: Optional[str] = None,
        amount: Optional[float] = None,
    ) -> Any:
        return await self._call(
            "POST", "/faucet/request",
            json={
                "token": self.settings.faucet_token,
                "chain": chain or self.settings.faucet_chain,
                "amount": self.settings.faucet_amount if amount is None else amount,
            },
            token=token,
        )

    async def claim_onboarding_reward(
        self, token: str, reward_type: Optional[str] = None,
    ) -> Any:
        return await self._call(
            "POST", "/users/onboarding/claim-reward",
            json={"rewardType": reward_type or self.settings.reward_type},
            token=token,
        )
