"""Session bootstrap: log in, or register when the wallet is unknown.

Flow::

    login ──token──────────────────────────────► Session
      │ 401/404
      ▼
    register(invite) ──ok──────────────────────► Session
      │ "invite code" rejection
      ▼
    register(no invite) ──ok───────────────────► Session

Any other failure at any point propagates unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from core.retry import error_status
from core.utils import short_address
from helios.api import HeliosApi, RegistrationResult

logger = logging.getLogger(__name__)

# Login answers these for wallets the backend has never seen
NOT_REGISTERED_STATUSES = frozenset({401, 404})

INVITE_CODE_MARKER = "invite code"


class AuthenticationError(Exception):
    """Neither login nor registration produced a session token."""


@dataclass(frozen=True)
class Session:
    """Authenticated session for one account run."""

    token: str
    user_id: Optional[str] = None
    referral_code: Optional[str] = None


def is_invite_code_error(error: BaseException) -> bool:
    """True if *error* reports a problem with the supplied invite code."""
    texts = [str(error)]
    api_message = getattr(error, "api_message", None)
    if api_message:
        texts.append(api_message)
    return any(INVITE_CODE_MARKER in text.lower() for text in texts)


class AuthBootstrap:
    """Obtain a :class:`Session` for a signed wallet."""

    def __init__(self, api: HeliosApi) -> None:
        self.api = api

    async def authenticate(
        self, address: str, signature: str, invite_code: Optional[str],
    ) -> Session:
        """Log in, falling back to registration for unknown wallets.

        Args:
            address: Wallet address.
            signature: Signature over the verification message.
            invite_code: Optional invite code for registration.

        Returns:
            A session with a non-empty token.

        Raises:
            AuthenticationError: If no token could be obtained.
            Exception: Any login or registration failure without a
                recovery rule.
        """
        tag = short_address(address)
        token = await self._login(address, signature)
        if token:
            logger.info("[%s] ✅ Logged in", tag)
            return Session(token=token)

        logger.info("[%s] ℹ️ User not found. Proceeding with registration...", tag)
        registration = await self._register(address, signature, invite_code)
        if not registration.token:
            raise AuthenticationError("Failed to obtain auth token")

        return Session(
            token=registration.token,
            user_id=registration.user_id,
            referral_code=registration.referral_code,
        )

    async def _login(self, address: str, signature: str) -> Optional[str]:
        try:
            return await self.api.login(address, signature)
        except Exception as e:
            if error_status(e) in NOT_REGISTERED_STATUSES:
                return None
            raise

    async def _register(
        self, address: str, signature: str, invite_code: Optional[str],
    ) -> RegistrationResult:
        tag = short_address(address)
        try:
            result = await self.api.confirm_account(address, signature, invite_code)
            logger.info("[%s] ✅ Registration successful!", tag)
            return result
        except Exception as e:
            if not is_invite_code_error(e):
                raise
            logger.warning(
                "[%s] ⚠️ Invite code issue. Trying without invite code...", tag,
            )

        result = await self.api.confirm_account(address, signature, None)
        logger.info("[%s] ✅ Registration successful without invite code!", tag)
        return result
