"""Onboarding state machine for an authenticated Helios user.

The remote ``completedSteps`` set is ground truth.  The local loop only
walks the fixed step catalog in order; a step already reported complete
costs no network calls, and completion of the whole flow is decided by a
fresh progress fetch, never by counting locally.

States::

    NOT_STARTED -> STEP_PENDING(i) -> STEP_STARTED(i) -> STEP_COMPLETED(i)
                -> ... -> ALL_STEPS_DONE -> REWARD_CLAIMED
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from core.config import BotSettings
from helios.api import HeliosApi, OnboardingProgress
from helios.auth import Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepDefinition:
    """One remote onboarding task.

    Attributes:
        key: Step key the API tracks progress under.
        evidence: Opaque tag the API requires on completion.
        description: Human-readable name for logs.
    """

    key: str
    evidence: str
    description: str


FAUCET_STEP_KEY = "claim_from_faucet"

# Order is part of the remote protocol
ONBOARDING_STEPS: Tuple[StepDefinition, ...] = (
    StepDefinition("add_helios_network", "network_added", "Add Helios Network"),
    StepDefinition(FAUCET_STEP_KEY, "tokens_claimed", "Claim from Faucet"),
    StepDefinition("mint_early_bird_nft", "nft_minted", "Mint Early Bird NFT"),
)


class OnboardingState(Enum):
    NOT_STARTED = "not_started"
    STEP_PENDING = "step_pending"
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    ALL_STEPS_DONE = "all_steps_done"
    REWARD_CLAIMED = "reward_claimed"


@dataclass
class OnboardingResult:
    """Outcome of :meth:`OnboardingStateMachine.run`.

    Attributes:
        progress: The re-fetched, authoritative progress.
        reward_claimed: Whether the reward claim call succeeded.
        executed_steps: Keys of the steps run in this pass.
    """

    progress: OnboardingProgress
    reward_claimed: bool = False
    executed_steps: List[str] = field(default_factory=list)


class OnboardingStateMachine:
    """Drive pending onboarding steps and claim the completion reward.

    Args:
        api: Helios REST client.
        settings: Source of the settle and pacing delays.
        steps: Step catalog, in protocol order.
    """

    def __init__(
        self,
        api: HeliosApi,
        settings: BotSettings,
        steps: Sequence[StepDefinition] = ONBOARDING_STEPS,
    ) -> None:
        self.api = api
        self.settings = settings
        self.steps = tuple(steps)
        self.state = OnboardingState.NOT_STARTED

    def _transition(
        self, state: OnboardingState, step: Optional[StepDefinition] = None,
    ) -> None:
        self.state = state
        logger.debug(
            "Onboarding state -> %s%s",
            state.value, f" ({step.key})" if step else "",
        )

    @staticmethod
    async def _pause(delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000)

    async def run(self, session: Session) -> OnboardingResult:
        """Run every step the remote side does not yet report complete.

        Start, complete and progress failures propagate.  Faucet and
        reward-claim failures are logged and tolerated.
        """
        self._transition(OnboardingState.NOT_STARTED)
        progress = await self.api.get_onboarding_progress(session.token)
        logger.info(
            "📊 Progress: %d completed step(s), complete=%s",
            len(progress.completed_steps), progress.is_onboarding_complete,
        )

        executed: List[str] = []
        for step in self.steps:
            if progress.is_completed(step.key):
                continue
            await self._run_step(session, step)
            executed.append(step.key)

        self._transition(OnboardingState.ALL_STEPS_DONE)
        final_progress = await self.api.get_onboarding_progress(session.token)
        logger.info(
            "📊 Final progress: %d completed step(s), complete=%s",
            len(final_progress.completed_steps),
            final_progress.is_onboarding_complete,
        )

        reward_claimed = False
        if final_progress.is_onboarding_complete:
            reward_claimed = await self._claim_reward(session)

        return OnboardingResult(
            progress=final_progress,
            reward_claimed=reward_claimed,
            executed_steps=executed,
        )

    async def _run_step(self, session: Session, step: StepDefinition) -> None:
        self._transition(OnboardingState.STEP_PENDING, step)
        logger.info("🛠️ Task: %s", step.description)

        await self.api.start_onboarding_step(session.token, step.key)
        self._transition(OnboardingState.STEP_STARTED, step)
        await self._pause(self.settings.step_settle_delay_ms)

        if step.key == FAUCET_STEP_KEY:
            try:
                await self.api.request_faucet_tokens(session.token)
                logger.info("💰 Faucet tokens claimed successfully")
            except Exception as e:
                # Non-fatal: the faucet may already have been claimed
                logger.warning("⚠️ Faucet claim failed, continuing... (%s)", e)
            await self._pause(self.settings.faucet_settle_delay_ms)

        await self.api.complete_onboarding_step(session.token, step.key, step.evidence)
        self._transition(OnboardingState.STEP_COMPLETED, step)
        logger.info("✅ %s completed successfully", step.description)
        await self._pause(self.settings.step_pacing_delay_ms)

    async def _claim_reward(self, session: Session) -> bool:
        try:
            await self.api.claim_onboarding_reward(session.token)
        except Exception as e:
            logger.warning("⚠️ Reward claim failed (%s)", e)
            return False
        self._transition(OnboardingState.REWARD_CLAIMED)
        logger.info("🎉 Reward claimed successfully!")
        return True
