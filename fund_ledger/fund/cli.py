"""
Fund Ledger CLI.

Command-line interface for running the reference scenario and inspecting
a persisted fund.
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from fund_ledger.config import AppConfig, ConfigError, ConfigLoader
from fund_ledger.core import (
    FundLedgerError,
    add_file_handler,
    get_audit_logger,
    get_logger,
    set_log_level,
    timestamp_to_datetime,
    to_human,
)

from .controller import FundController
from .models.config import rate_to_fraction
from .models.records import EventKind, RewardRole
from .simulation import InMemoryToken, ManualClock, MockPriceFeed, OracleRouter
from .storage.repository import FundRepository

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config/fund.yaml"


class FundLedgerCLI:
    """
    Command-line interface for the fund ledger.

    Example:
        >>> cli = FundLedgerCLI(config, repository)
        >>> cli.run(["demo"])
        >>> cli.run(["status"])
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        repository: Optional[FundRepository] = None,
    ):
        """
        Initialize CLI.

        Args:
            config: Application configuration
            repository: FundRepository instance
        """
        self._config = config or AppConfig()
        self._repository = repository
        self._parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser."""
        parser = argparse.ArgumentParser(
            prog="fund-ledger",
            description="Pooled-asset fund ledger",
        )
        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        # demo command
        demo_parser = subparsers.add_parser(
            "demo",
            help="Run the reference scenario against in-memory collaborators",
        )
        demo_parser.add_argument(
            "--deposit",
            type=int,
            default=100_000,
            help="Bootstrap deposit in whole USDC (default: 100000)",
        )
        demo_parser.add_argument(
            "--trade",
            type=int,
            default=2_000,
            help="USDC traded into WETH by the proposal (default: 2000)",
        )
        demo_parser.add_argument(
            "--fee-bps",
            type=int,
            default=30,
            help="Router fee in basis points (default: 30)",
        )
        demo_parser.add_argument(
            "--no-save",
            action="store_true",
            help="Do not persist the resulting fund",
        )

        # status command
        subparsers.add_parser("status", help="Show the persisted fund")

        # proposals command
        subparsers.add_parser("proposals", help="List active proposals")

        # epochs command
        subparsers.add_parser("epochs", help="Show the open epoch and pending queue")

        # history command
        history_parser = subparsers.add_parser("history", help="View ledger events")
        history_parser.add_argument(
            "--kind", "-k",
            type=str,
            choices=[k.value for k in EventKind],
            help="Filter by event kind",
        )
        history_parser.add_argument(
            "--actor", "-a",
            type=str,
            help="Filter by calling identity",
        )
        history_parser.add_argument(
            "--limit", "-l",
            type=int,
            default=20,
            help="Maximum events to show (default: 20)",
        )

        # stats command
        subparsers.add_parser("stats", help="Show event statistics")

        return parser

    def run(self, args: List[str]) -> int:
        """
        Run CLI command.

        Args:
            args: Command-line arguments

        Returns:
            Exit code (0 for success)
        """
        if not args:
            self._parser.print_help()
            return 0

        parsed = self._parser.parse_args(args)

        if not parsed.command:
            self._parser.print_help()
            return 0

        try:
            handler = getattr(self, f"_cmd_{parsed.command.replace('-', '_')}", None)
            if handler:
                return handler(parsed)
            else:
                print(f"Unknown command: {parsed.command}")
                return 1
        except FundLedgerError as e:
            print(f"Error: {e}")
            logger.error(f"CLI error: {e}")
            return 1

    # =========================================================================
    # Command Handlers
    # =========================================================================

    def _cmd_demo(self, args: argparse.Namespace) -> int:
        """Handle demo command."""
        settings = self._config.fund
        clock = ManualClock(start=1_700_000_000)

        usdc = InMemoryToken("usdc", "USDC", 6)
        weth = InMemoryToken("weth", "WETH", 18)
        wbtc = InMemoryToken("wbtc", "WBTC", 8)
        usdc_feed = MockPriceFeed("usdc-usd", 1 * 10**8, timestamp=clock.now)
        weth_feed = MockPriceFeed("weth-usd", 2_000 * 10**8, timestamp=clock.now)
        wbtc_feed = MockPriceFeed("wbtc-usd", 60_000 * 10**8, timestamp=clock.now)

        router = OracleRouter("router", fee_bps=args.fee_bps)
        weth.mint(router.address, 1_000 * 10**18)
        wbtc.mint(router.address, 100 * 10**8)
        usdc.mint(router.address, 10_000_000 * 10**6)

        repository = None
        if not args.no_save:
            repository = self._repository or FundRepository(self._config.storage.db_path)
            repository.initialize()

        fund = FundController.create(
            owner=settings.owner,
            base_token=usdc,
            base_feed=usdc_feed,
            router=router,
            parameters=settings.to_parameters(),
            account=settings.account,
            clock=clock,
            repository=repository if self._config.storage.autosave else None,
        )
        governor = settings.owner
        decimals = fund.parameters.share_decimals

        print("\n=== Bootstrap ===")
        deposit = args.deposit * 10**6
        usdc.mint("alice", deposit)
        usdc.approve("alice", fund.account, deposit)
        minted = fund.issue("alice", deposit)
        print(f"alice deposited {args.deposit} USDC, minted {to_human(minted, decimals)} shares")

        fund.add_asset(governor, weth, weth_feed)
        fund.add_asset(governor, wbtc, wbtc_feed)
        print(f"Assets: {', '.join(a.symbol for a in fund.get_assets())}")

        print("\n=== Proposal ===")
        nav_before = fund.total_value()
        proposal = fund.propose_swap("bob", usdc.address, weth.address, args.trade * 10**6)
        print(f"bob proposed #{proposal.id}: {args.trade} USDC -> WETH")
        if fund.parameters.acceptance_timelock:
            fund.intent_to_accept(governor, proposal.id)
            clock.advance(fund.parameters.acceptance_timelock)
        executed = fund.accept_proposal(governor, proposal.id)
        nav_after = fund.total_value()
        print(f"{governor} accepted, received {to_human(executed.amounts_out[0], 18)} WETH")
        print(f"NAV {to_human(nav_before, 6)} -> {to_human(nav_after, 6)} USDC")

        print("\n=== Rewards ===")
        clock.advance(fund.parameters.epoch_duration)
        supply_before = fund.total_supply
        for role, result in (
            (RewardRole.PROPOSER, fund.payout_proposers("bob")),
            (RewardRole.APPROVER, fund.payout_approvers(governor)),
        ):
            for participant, amount in result.rewards.items():
                print(f"{role.value:<9} {participant}: {to_human(amount, decimals)} shares")
        print(
            f"Supply {to_human(supply_before, decimals)} -> "
            f"{to_human(fund.total_supply, decimals)} {fund.parameters.share_symbol}"
        )

        fund.check_holdings()
        if repository is not None and self._config.storage.autosave:
            print(f"\nFund saved to {repository.db_path}")
        return 0

    def _require_snapshot(self) -> Optional[Dict[str, Any]]:
        if not self._repository:
            print("Error: Repository not initialized")
            return None
        snapshot = self._repository.load_snapshot()
        if snapshot is None:
            print("No persisted fund found (run `fund-ledger demo` first)")
        return snapshot

    def _cmd_status(self, args: argparse.Namespace) -> int:
        """Handle status command."""
        snapshot = self._require_snapshot()
        if snapshot is None:
            return 1
        self._print_status(snapshot)
        return 0

    def _cmd_proposals(self, args: argparse.Namespace) -> int:
        """Handle proposals command."""
        snapshot = self._require_snapshot()
        if snapshot is None:
            return 1
        if not snapshot["proposals"]:
            print("No active proposals")
            return 0
        self._print_proposals(snapshot["proposals"])
        return 0

    def _cmd_epochs(self, args: argparse.Namespace) -> int:
        """Handle epochs command."""
        snapshot = self._require_snapshot()
        if snapshot is None:
            return 1
        self._print_epochs(snapshot["current_epoch"], snapshot["pending_epochs"])
        return 0

    def _cmd_history(self, args: argparse.Namespace) -> int:
        """Handle history command."""
        if not self._repository:
            print("Error: Repository not initialized")
            return 1

        events = self._repository.get_events(
            kind=EventKind(args.kind) if args.kind else None,
            actor=args.actor,
            limit=args.limit,
        )
        if not events:
            print("No ledger events found")
            return 0

        self._print_history(events)
        return 0

    def _cmd_stats(self, args: argparse.Namespace) -> int:
        """Handle stats command."""
        if not self._repository:
            print("Error: Repository not initialized")
            return 1

        stats = self._repository.get_statistics()
        print("\n=== Ledger Statistics ===")
        print(f"Total Events: {stats['total_events']}")
        if stats["first_event"] is not None:
            print(f"First Event:  {timestamp_to_datetime(stats['first_event']):%Y-%m-%d %H:%M}")
            print(f"Last Event:   {timestamp_to_datetime(stats['last_event']):%Y-%m-%d %H:%M}")
        for kind, count in sorted(stats["by_kind"].items()):
            print(f"  {kind}: {count}")
        return 0

    # =========================================================================
    # Output Formatting
    # =========================================================================

    def _print_status(self, snapshot: Dict[str, Any]) -> None:
        """Print persisted fund status."""
        params = snapshot["parameters"]
        share_decimals = int(params["share_decimals"])

        print("\n=== Fund Status ===")
        print(f"Owner:          {snapshot['owner']}")
        print(f"Account:        {snapshot['account']}")
        print(
            f"Share Supply:   {to_human(int(snapshot['share_supply']), share_decimals)} "
            f"{params['share_symbol']}"
        )
        print(f"Holders:        {len(snapshot['share_balances'])}")
        print(f"Proposals:      {len(snapshot['proposals'])} active")
        print(f"Pending Epochs: {len(snapshot['pending_epochs'])}")

        print("\n--- Holdings (base units) ---")
        for asset in snapshot["assets"]:
            balance = snapshot["balances"].get(asset["token"], "0")
            print(f"  {asset['token']:<12} {balance:>28}  feed={asset['feed']}")

        print("\n--- Parameters ---")
        print(f"Epoch Duration:  {params['epoch_duration']}s")
        print(f"Proposer Rate:   {rate_to_fraction(int(params['proposer_reward_rate'])):%}")
        print(f"Approver Rate:   {rate_to_fraction(int(params['approver_reward_rate'])):%}")
        print(f"Timelock:        {params['acceptance_timelock']}s")
        print(f"Proposal TTL:    {params['proposal_ttl']}s")

    def _print_proposals(self, proposals: List[Dict[str, Any]]) -> None:
        """Print active proposals."""
        print("\n=== Active Proposals ===")
        print(f"{'ID':>4} {'Proposer':<12} {'State':<16} {'Legs'}")
        print("-" * 70)
        for p in proposals:
            legs = ", ".join(
                f"{leg['amount_in']} {leg['asset_in']}->{leg['asset_out']}" for leg in p["legs"]
            )
            print(f"{p['id']:>4} {p['proposer']:<12} {p['state']:<16} {legs}")

    def _print_epochs(self, current: Dict[str, Any], pending: List[Dict[str, Any]]) -> None:
        """Print epoch state."""
        print("\n=== Epochs ===")
        print(
            f"Open: #{current['index']} "
            f"{timestamp_to_datetime(current['start_time']):%Y-%m-%d %H:%M} -> "
            f"{timestamp_to_datetime(current['end_time']):%Y-%m-%d %H:%M}, "
            f"{current['total_accepted']} accepted"
        )
        if not pending:
            print("Pending queue empty")
            return
        print("\n--- Pending ---")
        for epoch in pending:
            paid = []
            if epoch["proposers_paid"]:
                paid.append("proposers")
            if epoch["approvers_paid"]:
                paid.append("approvers")
            print(
                f"  #{epoch['index']}: {epoch['total_accepted']} accepted, "
                f"paid: {', '.join(paid) or 'none'}"
            )

    def _print_history(self, events: list) -> None:
        """Print ledger events."""
        print("\n=== Ledger History ===")
        print(f"{'Timestamp':<18} {'Kind':<22} {'Actor':<12} Data")
        print("-" * 80)
        for event in events:
            ts = timestamp_to_datetime(event.timestamp).strftime("%Y-%m-%d %H:%M")
            print(f"{ts:<18} {event.kind.value:<22} {event.actor:<12} {event.data}")


def create_cli(
    config: Optional[AppConfig] = None,
    repository: Optional[FundRepository] = None,
) -> FundLedgerCLI:
    """Create CLI instance."""
    return FundLedgerCLI(config, repository)


def _apply_logging(config: AppConfig) -> None:
    set_log_level(config.logging.level)
    if config.logging.file:
        add_file_handler(config.logging.file, config.logging.level)
    if config.logging.audit_dir:
        get_audit_logger(log_dir=Path(config.logging.audit_dir))


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI.

    Global options ``--config PATH`` and ``--env NAME`` select the
    configuration; the rest is passed to the command parser.
    """
    if args is None:
        args = sys.argv[1:]

    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", "-c", type=str, default=None)
    pre.add_argument("--env", "-e", type=str, default=None)
    options, remaining = pre.parse_known_args(args)

    config_path = options.config or (DEFAULT_CONFIG_PATH if Path(DEFAULT_CONFIG_PATH).exists() else None)
    try:
        config = ConfigLoader().load(config_path, env=options.env) if config_path else AppConfig()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    _apply_logging(config)

    repository = FundRepository(config.storage.db_path)
    repository.initialize()

    cli = FundLedgerCLI(config, repository)
    return cli.run(remaining)


if __name__ == "__main__":
    sys.exit(main())
