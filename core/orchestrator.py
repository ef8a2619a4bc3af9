"""Sequential batch orchestration for the Helios onboarding bot.

Accounts are processed strictly one after another and share one proxy
rotator and chain connection.  A fixed pause separates consecutive
accounts.

Classes:
    BatchSummary: Collected outcomes of one batch.
    BatchOrchestrator: Runs an :class:`~helios.account.AccountRunner`
        over a list of private keys.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Sequence

from core.config import BotSettings

if TYPE_CHECKING:
    from core.monitoring import RunReporter
    from helios.account import AccountOutcome, AccountRunner

logger = logging.getLogger(__name__)


@dataclass
class BatchSummary:
    """Outcomes of a batch, in processing order."""

    outcomes: List["AccountOutcome"] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def successful(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return self.total - self.successful


class BatchOrchestrator:
    """Run every wallet of a batch through one shared runner.

    Args:
        settings: Source of the inter-account delay.
        runner: Per-account pipeline.
        reporter: Optional console reporter for headers and summaries.
    """

    def __init__(
        self,
        settings: BotSettings,
        runner: "AccountRunner",
        reporter: Optional["RunReporter"] = None,
    ) -> None:
        self.settings = settings
        self.runner = runner
        self.reporter = reporter

    async def run(
        self, private_keys: Sequence[str], invite_code: Optional[str] = None,
    ) -> BatchSummary:
        """Process *private_keys* in order with one shared invite code.

        Returns:
            The batch summary; one outcome per processed key.
        """
        summary = BatchSummary()
        total = len(private_keys)
        logger.info("🚀 Processing %d account(s) sequentially", total)

        for index, private_key in enumerate(private_keys):
            if self.reporter:
                self.reporter.show_account_header(index, total, invite_code)

            outcome = await self.runner.run(private_key, invite_code)
            summary.outcomes.append(outcome)

            if self.reporter:
                self.reporter.show_outcome(outcome)

            if index < total - 1:
                await asyncio.sleep(self.settings.account_delay_ms / 1000)

        logger.info(
            "🏁 Batch finished: %d/%d account(s) successful",
            summary.successful, summary.total,
        )
        if self.reporter:
            self.reporter.show_batch_summary(summary)
        return summary
