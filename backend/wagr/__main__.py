"""Wagr CLI entry point."""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from wagr import __version__
from wagr.calculations import format_return_multiplier, format_return_percentage
from wagr.config import get_settings
from wagr.currency import Currency, format_currency
from wagr.exceptions import WagrError
from wagr.models import WagerPoolSnapshot, load_wager_file
from wagr.settlement import settle_wager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """# Wagr Configuration
# Secrets (LOGFIRE_TOKEN, DATABASE_URL) belong in .env, not here.

fees:
  wager_platform_fee_percentage: 0.05
  quiz_platform_fee_percentage: 0.10

rate_limits:
  enabled: true
  api_requests:
    limit: 100
    window: 60

server:
  host: 0.0.0.0
  port: 8000
  allowed_origins:
    - http://localhost:3000

wagers:
  default_currency: NGN
  default_entry_amount: 500
"""


def _print_validation_errors(e: ValidationError) -> None:
    for error in e.errors():
        print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
    print()


def cmd_init(args: argparse.Namespace) -> int:
    """Create the data directory and a configuration template."""
    data_dir = Path("data").resolve()

    try:
        data_dir.mkdir(exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE)
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        print(f"\n✓ Data directory initialized at {data_dir}\n")
        return 0

    except OSError as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()
    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        _print_validation_errors(e)
        return 1

    print("\n=== Wagr Configuration ===\n")
    print(f"Environment: {settings.environment}")
    print(f"Data Directory: {settings.data_dir}\n")

    print("Fees:")
    print(f"  Wager Platform Fee: {settings.fees.wager_platform_fee_percentage:.0%}")
    print(f"  Quiz Platform Fee: {settings.fees.quiz_platform_fee_percentage:.0%}\n")

    limits = settings.rate_limits
    print(f"Rate Limits ({'enabled' if limits.enabled else 'disabled'}):")
    print(f"  API Requests: {limits.api_requests.limit} per {limits.api_requests.window}s")
    print(f"  Store: {'database' if settings.database_url else 'memory'}\n")

    print("Server:")
    print(f"  Address: {settings.server.host}:{settings.server.port}")
    print(f"  Allowed Origins: {', '.join(settings.server.allowed_origins)}\n")

    print("Wagers:")
    print(f"  Default Currency: {settings.wagers.default_currency.value}")
    print(
        f"  Default Entry: "
        f"{format_currency(settings.wagers.default_entry_amount, settings.wagers.default_currency)}\n"
    )

    print(f"Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")
    return 0


def cmd_quote(args: argparse.Namespace) -> int:
    """Print potential returns for joining either side."""
    settings = get_settings()
    fee = args.fee if args.fee is not None else settings.fees.wager_platform_fee_percentage
    currency = Currency(args.currency) if args.currency else settings.wagers.default_currency

    try:
        snapshot = WagerPoolSnapshot(
            entry_amount=args.entry,
            side_a_total=args.side_a,
            side_b_total=args.side_b,
            fee_percentage=fee,
        )
    except ValidationError as e:
        print("\n❌ Invalid quote input:\n")
        _print_validation_errors(e)
        return 1

    returns = snapshot.calculate()

    print("\n=== Potential Returns ===\n")
    print(f"Entry: {format_currency(snapshot.entry_amount, currency)}")
    print(f"Total Pool: {format_currency(returns.total_pool, currency)}")
    print(f"Platform Fee ({fee:.0%}): {format_currency(returns.platform_fee, currency)}")
    print(f"Winnings Pool: {format_currency(returns.winnings_pool, currency)}\n")

    for side, potential, multiplier, percentage in (
        ("A", returns.side_a_potential, returns.side_a_return_multiplier, returns.side_a_return_percentage),
        ("B", returns.side_b_potential, returns.side_b_return_multiplier, returns.side_b_return_percentage),
    ):
        print(
            f"Side {side}: win {format_currency(potential, currency)} "
            f"({format_return_multiplier(multiplier)}, {format_return_percentage(percentage)})"
        )
    print()
    return 0


def cmd_settle(args: argparse.Namespace) -> int:
    """Settle a wager described in a YAML file and print the payouts."""
    try:
        loaded = load_wager_file(Path(args.file))
        result = settle_wager(loaded.wager, loaded.entries)
    except WagrError as e:
        print(f"\n❌ {e.message}\n")
        if isinstance(e.details, list):
            for error in e.details:
                print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
            print()
        return 1

    currency = loaded.wager.currency

    print(f"\n=== Settlement: {loaded.wager.title} ===\n")
    print(f"Outcome: {result.outcome.value}")
    print(f"Status: {result.status.value}")
    print(f"Total Pool: {format_currency(float(result.total_pool), currency)}")
    print(f"Platform Fee: {format_currency(float(result.platform_fee), currency)}")
    print(f"Distributed: {format_currency(float(result.total_distributed), currency)}\n")

    for txn in result.transactions:
        print(f"  • {txn.user_id}: {txn.type.value} {format_currency(float(txn.amount), currency)}")
    if not result.transactions:
        print("  (No transactions)")
    print()
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "wagr.api.server:app",
        host=args.host or settings.server.host,
        port=args.port or settings.server.port,
        reload=args.reload,
        log_level="debug" if args.debug else "info",
    )
    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Wagr: pari-mutuel wager pricing and settlement",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Wagr {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory and configuration file",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_quote = subparsers.add_parser(
        "quote",
        help="Show potential returns for an entry amount",
    )
    parser_quote.add_argument("--entry", type=float, required=True, help="Entry amount")
    parser_quote.add_argument("--side-a", type=float, default=0.0, help="Total staked on side A")
    parser_quote.add_argument("--side-b", type=float, default=0.0, help="Total staked on side B")
    parser_quote.add_argument("--fee", type=float, default=None, help="Platform fee fraction (default from config)")
    parser_quote.add_argument(
        "--currency",
        choices=[c.value for c in Currency],
        default=None,
        help="Display currency",
    )
    parser_quote.set_defaults(func=cmd_quote)

    parser_settle = subparsers.add_parser(
        "settle",
        help="Settle a wager from a YAML file of the wager and its entries",
    )
    parser_settle.add_argument("file", help="Path to the wager YAML file")
    parser_settle.set_defaults(func=cmd_settle)

    parser_serve = subparsers.add_parser(
        "serve",
        help="Run the HTTP API",
    )
    parser_serve.add_argument("--host", default=None, help="Bind address")
    parser_serve.add_argument("--port", type=int, default=None, help="Bind port")
    parser_serve.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser_serve.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
