#!/usr/bin/env python3
"""
DatoGPT Call Inspector - Tool for inspecting logged oracle calls.

Every prompt DatoGPT sends to the LLM and image oracles is logged in the
database together with the raw answer. This tool lists those calls, shows a
single call in full, summarises them per purpose and lists generated assets.
"""

import argparse
import logging
from typing import Dict, List, Optional

from datogpt.config import config
from datogpt.database import DatabaseManager


def setup_logging():
    """Configure logging for the inspector."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def format_timestamp(value) -> str:
    return str(value)[:19] if value else "Unknown"


def list_calls(
    purpose: Optional[str] = None,
    field_name: Optional[str] = None,
    success_only: bool = False,
    limit: int = 10
):
    """List recent oracle calls."""
    print(f"\n{'='*60}")
    print("DATOGPT ORACLE CALL LOG")
    print(f"{'='*60}")

    with DatabaseManager(config.database_filename) as db:
        db.initialize_database()

        calls = db.get_oracle_calls(
            purpose=purpose,
            field_name=field_name,
            success_only=success_only,
            limit=limit
        )

        if not calls:
            print("No oracle calls found.")
            return

        print(f"\nFound {len(calls)} calls:")
        print(f"{'ID':<6} {'Purpose':<16} {'Field':<20} {'Success':<8} {'Time (ms)':<10} {'Called At':<20}")
        print("-" * 84)

        for call in calls:
            success_symbol = "✅" if call["success"] else "❌"
            execution_time = call["execution_time_ms"] or 0
            field = (call["field_name"] or "-")[:19]
            print(
                f"{call['call_id']:<6} {call['purpose']:<16} {field:<20} "
                f"{success_symbol:<8} {execution_time:<10} {format_timestamp(call['called_at']):<20}"
            )


def show_call_details(call_id: int):
    """Show the full prompt and answer of a single call."""
    print(f"\n{'='*60}")
    print(f"ORACLE CALL DETAILS - ID: {call_id}")
    print(f"{'='*60}")

    with DatabaseManager(config.database_filename) as db:
        db.initialize_database()

        call = db.get_oracle_call(call_id)

        if not call:
            print(f"❌ Call ID {call_id} not found.")
            return

        print(f"\n📋 BASIC INFORMATION")
        print(f"   Purpose: {call['purpose']}")
        print(f"   Field: {call['field_name'] or '-'}")
        print(f"   Model: {call['model_name']}")
        print(f"   Success: {'✅ Yes' if call['success'] else '❌ No'}")
        print(f"   Execution Time: {call['execution_time_ms']}ms")
        print(f"   Called At: {call['called_at']}")

        if call['error_message']:
            print(f"   Error: {call['error_message']}")

        print(f"\n👤 PROMPT")
        print(call['prompt'])

        print(f"\n📤 RAW RESPONSE")
        print(call['raw_response'] or "(none)")


def summarize_calls(calls: List[Dict]) -> Dict[str, Dict]:
    """
    Aggregate call counts, success rates and timings per purpose.

    Args:
        calls: Rows as returned by ``DatabaseManager.get_oracle_calls``

    Returns:
        Statistics keyed by purpose
    """
    stats: Dict[str, Dict] = {}
    for call in calls:
        entry = stats.setdefault(call['purpose'], {
            'total_calls': 0,
            'successful_calls': 0,
            'failed_calls': 0,
            'total_time_ms': 0,
        })
        entry['total_calls'] += 1
        if call['success']:
            entry['successful_calls'] += 1
        else:
            entry['failed_calls'] += 1
        entry['total_time_ms'] += call['execution_time_ms'] or 0

    for entry in stats.values():
        entry['avg_time_ms'] = entry['total_time_ms'] / entry['total_calls']
        entry['success_rate'] = entry['successful_calls'] / entry['total_calls'] * 100
    return stats


def analyze_calls():
    """Show per-purpose statistics of logged calls."""
    print(f"\n{'='*60}")
    print("ORACLE CALL ANALYSIS")
    print(f"{'='*60}")

    with DatabaseManager(config.database_filename) as db:
        db.initialize_database()
        all_calls = db.get_oracle_calls()

    if not all_calls:
        print("No oracle calls found.")
        return

    stats = summarize_calls(all_calls)

    print(f"\n📊 CALLS BY PURPOSE:")
    print(f"{'Purpose':<20} {'Calls':<8} {'Success Rate':<12} {'Avg Time (ms)':<15}")
    print("-" * 60)
    for purpose, entry in sorted(stats.items()):
        print(f"{purpose:<20} {entry['total_calls']:<8} {entry['success_rate']:.1f}%{'':<7} {entry['avg_time_ms']:.1f}")

    total_calls = len(all_calls)
    successful_calls = sum(1 for call in all_calls if call['success'])
    print(f"\n📈 OVERALL STATISTICS:")
    print(f"   Total Calls: {total_calls}")
    print(f"   Successful Calls: {successful_calls}")
    print(f"   Failed Calls: {total_calls - successful_calls}")
    print(f"   Overall Success Rate: {successful_calls / total_calls * 100:.1f}%")


def list_assets(limit: int = 10):
    """List assets created by image generation."""
    print(f"\n{'='*60}")
    print("GENERATED ASSETS")
    print(f"{'='*60}")

    with DatabaseManager(config.database_filename) as db:
        db.initialize_database()
        assets = db.list_generated_assets(limit=limit)

    if not assets:
        print("No generated assets found.")
        return

    for asset in assets:
        print(f"\n🖼  {asset['asset_id']} ({format_timestamp(asset['created_at'])})")
        print(f"   File: {asset['filename']}")
        print(f"   Prompt: {asset['prompt']}")
        if asset['revised_prompt']:
            print(f"   Revised: {asset['revised_prompt']}")


def main():
    """Main CLI entry point."""
    setup_logging()

    parser = argparse.ArgumentParser(
        description="DatoGPT Call Inspector - Tool for inspecting logged oracle calls",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list                           # List recent oracle calls
  %(prog)s list --purpose translate       # List translation calls only
  %(prog)s list --success-only --limit 5  # List 5 most recent successful calls
  %(prog)s show 42                        # Show prompt and answer of call 42
  %(prog)s analyze                        # Show per-purpose statistics
  %(prog)s assets                         # List generated assets
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    list_parser = subparsers.add_parser('list', help='List oracle calls')
    list_parser.add_argument('--purpose', help='Filter by call purpose (e.g. value, translate, block_selection)')
    list_parser.add_argument('--field', help='Filter by field name')
    list_parser.add_argument('--success-only', action='store_true', help='Show only successful calls')
    list_parser.add_argument('--limit', type=int, default=10, help='Limit number of results (default: 10)')

    show_parser = subparsers.add_parser('show', help='Show a specific call in full')
    show_parser.add_argument('call_id', type=int, help='Call ID to show')

    subparsers.add_parser('analyze', help='Analyze logged calls per purpose')

    assets_parser = subparsers.add_parser('assets', help='List generated assets')
    assets_parser.add_argument('--limit', type=int, default=10, help='Limit number of results (default: 10)')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    try:
        if args.command == 'list':
            list_calls(
                purpose=args.purpose,
                field_name=args.field,
                success_only=args.success_only,
                limit=args.limit
            )
        elif args.command == 'show':
            show_call_details(args.call_id)
        elif args.command == 'analyze':
            analyze_calls()
        elif args.command == 'assets':
            list_assets(args.limit)

    except KeyboardInterrupt:
        print("\n\n👋 Interrupted by user")
    except Exception as e:
        print(f"\n❌ Error: {e}")
        logging.exception("Unexpected error")


if __name__ == "__main__":
    main()
