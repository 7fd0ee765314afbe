"""Command line entry point for review photo validation."""
import argparse
import logging
import sys
from pathlib import Path

from ugc_validator.utils.logging_config import setup_logging
from ugc_validator.types import SubmissionRequest
from ugc_validator.errors import (
    ConcurrentUpdateError,
    OrderAlreadyRewardedError,
    RecordStoreError,
    RewardPoolError,
    SubmissionValidationError,
)
from ugc_validator.config.settings import load_config
from ugc_validator.extractors.image_extractor import load_candidates_from_paths
from ugc_validator.orchestration.runner import process_submission
from ugc_validator.orchestration.services import build_services
from ugc_validator.storage.sqlite_store import SqliteOrderRecordStore, SqliteRewardCodePool
from ugc_validator.utils.file_operations import read_orders_csv, read_reward_codes_csv

logger = logging.getLogger(__name__)


class Colors:
    """ANSI color codes for terminal output."""
    RESET = '\033[0m'
    RED = '\033[31m'
    GREEN = '\033[32m'
    YELLOW = '\033[33m'
    CYAN = '\033[36m'
    BRIGHT_BLUE = '\033[94m'
    BRIGHT_CYAN = '\033[96m'
    BRIGHT_WHITE = '\033[97m'
    BOLD = '\033[1m'
    DIM = '\033[2m'


def supports_color():
    """Check if terminal supports colors."""
    return hasattr(sys.stdout, 'isatty') and sys.stdout.isatty()


if not supports_color():
    for attr in dir(Colors):
        if not attr.startswith('_'):
            setattr(Colors, attr, '')


def print_header(text: str, char: str = "=", color: str = Colors.CYAN):
    """Print a formatted header."""
    width = 70
    print()
    print(color + Colors.BOLD + char * width + Colors.RESET)
    print(color + Colors.BOLD + text.center(width) + Colors.RESET)
    print(color + Colors.BOLD + char * width + Colors.RESET)
    print()


def print_success(text: str):
    print(Colors.GREEN + Colors.BOLD + "✓ " + Colors.RESET + Colors.GREEN + text + Colors.RESET)


def print_error(text: str):
    print(Colors.RED + Colors.BOLD + "✗ " + Colors.RESET + Colors.RED + text + Colors.RESET)


def print_warning(text: str):
    print(Colors.YELLOW + Colors.BOLD + "⚠ " + Colors.RESET + Colors.YELLOW + text + Colors.RESET)


def print_info(text: str):
    print(Colors.CYAN + "ℹ " + Colors.RESET + Colors.BRIGHT_CYAN + text + Colors.RESET)


def print_section(text: str):
    """Print section header."""
    print()
    print(Colors.BRIGHT_BLUE + Colors.BOLD + "▶ " + text + Colors.RESET)
    print(Colors.DIM + "─" * 70 + Colors.RESET)


def run_validate(args) -> int:
    """Validate local photo files for one order, exactly as the HTTP endpoint would."""
    config = load_config()
    services = build_services(config)

    image_paths = [Path(p) for p in args.images]
    missing = [p for p in image_paths if not p.exists()]
    for path in missing:
        print_error(f"File not found: {path}")
    if missing:
        return 1

    request = SubmissionRequest(
        order_id=args.order,
        order_email=args.email,
        review_text=args.review,
        customer_name=args.name,
        star_rating=args.rating,
        images=load_candidates_from_paths(image_paths),
    )

    print_header(f"Validating order {args.order}")
    try:
        result = process_submission(request, services)
    except SubmissionValidationError as e:
        print_section("Invalid submission")
        for message in e.errors:
            print_error(message)
        return 2
    except OrderAlreadyRewardedError as e:
        print_warning(str(e))
        return 3
    except RecordStoreError as e:
        logger.error(f"Record store unavailable: {e}", exc_info=True)
        print_error(f"Order status could not be recorded: {e}")
        return 4

    print_section("Per-image results")
    for outcome in result.outcomes:
        line = f"{outcome.filename}: score {outcome.quality_score} | {outcome.feedback_text or 'OK'}"
        if outcome.accepted:
            print_success(line)
        else:
            print_error(line)

    summary = result.summary
    print_section("Summary")
    print(Colors.BRIGHT_WHITE + "  Accepted:   " + Colors.RESET + f"{summary.accepted_count}/{summary.total_count}")
    print(Colors.BRIGHT_WHITE + "  Avg Score:  " + Colors.RESET + f"{summary.average_score}")
    print(Colors.BRIGHT_WHITE + "  Qualified:  " + Colors.RESET + ("yes" if result.qualified else "no"))

    if result.reward:
        print_section("Reward")
        print_success(f"Code {result.reward.code} (review {result.review_id})")
        if not result.reward.delivery_confirmed:
            print_warning("The code could not be emailed, pass it on manually.")
    print()
    return 0


def run_import_codes(args) -> int:
    """Load reward codes from a CSV file into the pool."""
    config = load_config()
    database_path = Path(args.database) if args.database else config.database_path

    try:
        codes = read_reward_codes_csv(args.csv_file)
    except (FileNotFoundError, ValueError) as e:
        print_error(str(e))
        return 1

    pool = SqliteRewardCodePool(database_path, config.record_store_timeout_seconds)
    try:
        added = pool.add_codes(codes)
        stats = pool.stats()
    except RewardPoolError as e:
        logger.error(f"Import failed: {e}", exc_info=True)
        print_error(f"Import failed: {e}")
        return 1

    print_success(f"Imported {added} new code(s), {len(codes) - added} already present")
    print_info(f"Pool: {stats['available']} available, {stats['assigned']} assigned ({database_path})")
    return 0


def run_register_orders(args) -> int:
    """Create NotYetReviewed records for orders from a shop export."""
    config = load_config()
    database_path = Path(args.database) if args.database else config.database_path

    try:
        orders = read_orders_csv(args.csv_file)
    except (FileNotFoundError, ValueError) as e:
        print_error(str(e))
        return 1

    store = SqliteOrderRecordStore(database_path, config.record_store_timeout_seconds)
    registered = 0
    skipped = 0
    try:
        for order_id, email in orders:
            try:
                store.register_order(order_id, email)
                registered += 1
            except ConcurrentUpdateError:
                skipped += 1
    except RecordStoreError as e:
        logger.error(f"Order registration failed: {e}", exc_info=True)
        print_error(f"Order registration failed after {registered} order(s): {e}")
        return 1

    print_success(f"Registered {registered} order(s), {skipped} already known ({database_path})")
    return 0


def run_pool_status(args) -> int:
    """Show reward pool counts, the assigned codes, or one code's state."""
    config = load_config()
    database_path = Path(args.database) if args.database else config.database_path
    pool = SqliteRewardCodePool(database_path, config.record_store_timeout_seconds)

    try:
        if args.code:
            code = pool.get(args.code)
            if code is None:
                print_error(f"Code {args.code} is not in the pool")
                return 1
            owner = f" to order {code.assigned_order_id} ({code.assigned_email})" if code.assigned_order_id else ""
            print_info(f"{code.code}: {code.pool_status.value}{owner}")
            return 0

        stats = pool.stats()
        assigned = pool.assigned_codes()
    except RewardPoolError as e:
        logger.error(f"Pool status failed: {e}", exc_info=True)
        print_error(f"Pool status failed: {e}")
        return 1

    print_section("Reward pool")
    print(Colors.BRIGHT_WHITE + f"  Available:  {stats['available']}" + Colors.RESET)
    print(Colors.BRIGHT_WHITE + f"  Assigned:   {stats['assigned']}" + Colors.RESET)
    for code in assigned:
        print(Colors.DIM + f"  {code.code} -> {code.assigned_order_id} ({code.assigned_email})" + Colors.RESET)
    if stats['available'] == 0:
        print_warning("Pool is empty, rewards will use generated codes.")
    print()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="UGC review photo validation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m ugc_validator.main validate --order 1001 --email a@b.com \\
      --review "Great product, fits perfectly in my kitchen." --name "Ann" --rating 5 a.jpg b.jpg c.jpg
  python -m ugc_validator.main import-codes codes.csv
  python -m ugc_validator.main register-orders orders.csv
  python -m ugc_validator.main pool-status --code UGC-AB12-CD34
        """
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO)'
    )
    parser.add_argument('--log-file', type=str, default=None, help='Optional log file path')

    subparsers = parser.add_subparsers(dest='command', required=True)

    validate = subparsers.add_parser('validate', help='Validate local photos for an order')
    validate.add_argument('--order', required=True, help='Order number')
    validate.add_argument('--email', required=True, help='Order email')
    validate.add_argument('--review', required=True, help='Review text')
    validate.add_argument('--name', required=True, help='Customer name')
    validate.add_argument('--rating', required=True, type=int, help='Star rating 1-5')
    validate.add_argument('images', nargs='+', help='Photo files')
    validate.set_defaults(handler=run_validate)

    import_codes = subparsers.add_parser('import-codes', help='Load reward codes from a CSV file')
    import_codes.add_argument('csv_file', help='CSV file with a code column')
    import_codes.add_argument('--database', default=None, help='SQLite file (default: DATABASE_PATH)')
    import_codes.set_defaults(handler=run_import_codes)

    register_orders = subparsers.add_parser('register-orders', help='Register shop orders awaiting a review')
    register_orders.add_argument('csv_file', help='CSV export with an order number column and optional email column')
    register_orders.add_argument('--database', default=None, help='SQLite file (default: DATABASE_PATH)')
    register_orders.set_defaults(handler=run_register_orders)

    pool_status = subparsers.add_parser('pool-status', help='Show reward pool counts and assigned codes')
    pool_status.add_argument('--code', default=None, help='Show a single code')
    pool_status.add_argument('--database', default=None, help='SQLite file (default: DATABASE_PATH)')
    pool_status.set_defaults(handler=run_pool_status)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    setup_logging(log_level=args.log_level, log_file=log_file)

    try:
        return args.handler(args)
    except KeyboardInterrupt:
        print()
        print_error("Interrupted by user")
        return 130


if __name__ == '__main__':
    sys.exit(main())
