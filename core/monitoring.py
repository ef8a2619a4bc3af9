"""Console reporting for batch runs (Rich).

:class:`RunReporter` renders the human-facing parts of a run: the
start-up banner, the invite-code prompt, a header per account, a success
or failure panel per outcome and a closing batch table.  Progress lines
inside a run go through :mod:`logging`; this module only draws the
summaries.
"""

import json
from typing import TYPE_CHECKING, Any, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from core.config import BotSettings

if TYPE_CHECKING:
    from core.orchestrator import BatchSummary
    from helios.account import AccountOutcome

BANNER = r"""
██   ██ ███████ ██      ██  ██████  ███████
██   ██ ██      ██      ██ ██    ██ ██
███████ █████   ██      ██ ██    ██ ███████
██   ██ ██      ██      ██ ██    ██      ██
██   ██ ███████ ███████ ██  ██████  ███████
"""


class RunReporter:
    """Rich console views of a batch run.

    Args:
        settings: Source of the currency symbol and network name.
        proxy_count: Number of proxies loaded, shown in account headers.
        console: Console to draw on (tests pass a recording console).
    """

    def __init__(
        self,
        settings: BotSettings,
        proxy_count: int = 0,
        console: Optional[Console] = None,
    ) -> None:
        self.settings = settings
        self.proxy_count = proxy_count
        self.console = console or Console()

    def show_banner(self) -> None:
        self.console.print(Text(BANNER, style="bold cyan"))
        self.console.print(
            f"[bold]{self.settings.network_name} testnet onboarding[/bold]"
            f"  (chain id {self.settings.chain_id})"
        )

    def prompt_invite_code(self) -> Optional[str]:
        """Ask once for an invite code; blank input means none."""
        answer = Prompt.ask(
            "Enter invite code", default="", show_default=False, console=self.console,
        )
        self.console.clear()
        return answer.strip() or None

    def show_account_header(
        self, index: int, total: int, invite_code: Optional[str],
    ) -> None:
        self.console.rule(f"Account {index + 1}/{total}")
        self.console.print(f"Accounts available : {total}")
        self.console.print(f"🌐 Proxies loaded   : {self.proxy_count}")
        self.console.print(f"🔗 Invite code used : {invite_code or 'None'}")

    def _outcome_table(self, outcome: "AccountOutcome") -> Table:
        symbol = self.settings.currency_symbol
        table = Table(box=box.SIMPLE, show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        table.add_row("Wallet address", outcome.address)
        if outcome.success:
            table.add_row("Final balance", f"{outcome.final_balance} {symbol}")
            table.add_row("Balance gained", f"{outcome.format_delta()} {symbol}")
            table.add_row("Completed steps", str(outcome.completed_step_count))
            table.add_row("Onboarding done", "✅ Yes" if outcome.is_complete else "❌ No")
            table.add_row("Reward claimed", "✅ Yes" if outcome.reward_claimed else "❌ No")
        else:
            table.add_row("Error", outcome.error_message or "Unknown error")
            if outcome.api_response is not None:
                table.add_row("API response", format_payload(outcome.api_response))
        return table

    def show_outcome(self, outcome: "AccountOutcome") -> None:
        if outcome.success:
            title, style = "✅ PROCESS COMPLETED SUCCESSFULLY", "green"
        else:
            title, style = "❌ PROCESS FAILED", "red"
        self.console.print(
            Panel(self._outcome_table(outcome), title=title, border_style=style)
        )

    def show_batch_summary(self, summary: "BatchSummary") -> None:
        table = Table(title="Batch summary", box=box.ROUNDED)
        table.add_column("#", justify="right")
        table.add_column("Wallet")
        table.add_column("Result")
        table.add_column("Steps", justify="right")
        table.add_column("Delta", justify="right")
        for i, outcome in enumerate(summary.outcomes, start=1):
            result = "[green]ok[/green]" if outcome.success else "[red]failed[/red]"
            table.add_row(
                str(i),
                outcome.address,
                result,
                str(outcome.completed_step_count),
                outcome.format_delta(),
            )
        self.console.print(table)
        self.console.print(
            f"[bold]Successful accounts:[/bold] {summary.successful}/{summary.total}"
        )


def format_payload(payload: Any) -> str:
    """Compact JSON rendering of an API payload (text passes through)."""
    if isinstance(payload, str):
        return payload
    try:
        return json.dumps(payload, default=str)
    except (TypeError, ValueError):
        return repr(payload)
