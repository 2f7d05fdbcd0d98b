#!/usr/bin/env python3
"""
ETL Pipeline CLI
Command-line interface for the USAspending ETL pipeline.
"""

import asyncio
import argparse
import json
import sys
from pathlib import Path
import logging

from usaspending_etl.src.analyzer import SORT_FIELDS, filter_awards, sort_awards, summarize_awards
from usaspending_etl.src.api_client import APIRequestError
from usaspending_etl.src.batch_fetcher import BatchFetchError
from usaspending_etl.src.config import ConfigError, load_config
from usaspending_etl.src.orchestrator import ETLOrchestrator
from usaspending_etl.src.storage import StorageService


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler('etl_pipeline.log')
        ]
    )


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return number


def load_run_config(args):
    """Load the configuration and apply the --output override."""
    config = load_config(args.config)
    if getattr(args, 'output', None):
        config.output.directory = args.output
    return config


def print_warning_banner(warnings):
    """Print partial-data warnings in a block that stands out."""
    if not warnings:
        return
    print("\n" + "!" * 50)
    print("WARNING: results may be incomplete")
    for warning in warnings:
        print(f"  - {warning}")
    print("!" * 50)


def print_results(results):
    """Print pipeline results."""
    print("\n" + "=" * 50)
    print("Pipeline Results")
    print("=" * 50)

    print(f"Status: {results['status']}")

    if results['duration_seconds']:
        duration = results['duration_seconds']
        if duration < 60:
            print(f"Duration: {duration:.2f} seconds")
        else:
            minutes = int(duration // 60)
            seconds = duration % 60
            print(f"Duration: {minutes}m {seconds:.0f}s")

    print(f"\nData Fetched:")
    print(f"  Total: {results['total_fetched']}")
    for dtype, count in results.get('fetched', {}).items():
        print(f"  - {dtype}: {count}")

    if results.get('files'):
        print(f"\nFiles Saved:")
        for name, path in results['files'].items():
            print(f"  - {name}: {path}")

    print("=" * 50)
    print_warning_banner(results.get('warnings'))


def print_counts(title, counts):
    print(f"\n{title}:")
    for name, count in sorted(counts.items(), key=lambda item: item[1], reverse=True):
        print(f"  {name}: {count}")


async def run_fetch_awards(args):
    """Fetch award-level summaries."""
    print("=== USAspending Award Fetcher ===\n")
    orchestrator = ETLOrchestrator(load_run_config(args))

    results = await orchestrator.run_award_fetch(args.days)

    summary = orchestrator.last_result
    print(f"\nTotal Records: {summary.total_records}")
    print(f"Total Amount: ${summary.total_amount:,.2f}")
    print(f"Date Range: {summary.date_range['start']} to {summary.date_range['end']}")
    print_counts("Awards by Type", summary.by_type)

    print_results(results)
    return 0


async def run_fetch_transactions(args):
    """Fetch transaction-level data."""
    print("=== USAspending Transaction Fetcher ===\n")
    orchestrator = ETLOrchestrator(load_run_config(args))

    results = await orchestrator.run_transaction_fetch(args.days)

    summary = orchestrator.last_result
    print(f"\nTotal Transactions: {summary.total_records}")
    print(f"Unique Awards: {summary.unique_awards}")
    print(f"Total Obligation: ${summary.total_obligation:,.2f}")
    print(f"Date Range: {summary.date_range['start']} to {summary.date_range['end']}")
    print_counts("Transactions by Action Type", summary.by_action_type)
    print_counts("Transactions by Award Type", summary.by_award_type)

    print_results(results)
    return 0


def print_reconciliation(report):
    """Print the two-stage fetch summary."""
    print("\n" + "=" * 50)
    print("COMPLETE FETCH SUMMARY")
    print("=" * 50)
    print("\nSTAGE 1: TRANSACTIONS")
    print(f"   Total transactions fetched: {report.total_transactions:,}")
    print(f"   New transactions: {report.new_transactions:,}")
    print(f"   Unique awards referenced: {report.unique_award_ids:,}")

    print("\nSTAGE 2: AWARDS")
    print(f"   Awards requested: {report.awards_requested:,}")
    print(f"   Awards fetched: {report.awards_fetched:,}")
    print(f"   Awards missing: {report.awards_missing:,}")
    print(f"   Duplicates removed: {report.duplicates_removed:,}")
    if report.failed_batches:
        print(f"   Failed batches: {report.failed_batches:,}")

    print("\nJOIN ANALYSIS")
    print(f"   Transactions with award: {report.transactions_with_award:,}")
    print(f"   Transactions without award: {report.transactions_without_award:,}")
    print(f"   Join rate: {report.join_rate:.1f}%")

    if report.join_rate >= 95:
        print("\nEXCELLENT: >95% join rate achieved")
    elif report.join_rate >= 85:
        print("\nGOOD: >85% join rate achieved")
    else:
        print("\nWARNING: Join rate below 85%")


async def run_fetch_complete(args):
    """Run the two-stage transaction -> award fetch."""
    print("=== USAspending Complete Fetcher ===\n")
    orchestrator = ETLOrchestrator(load_run_config(args))

    results = await orchestrator.run_complete_fetch(args.days)

    print_reconciliation(orchestrator.last_result)
    print_results(results)
    return 0


async def run_analyze(args):
    """Filter and sort an existing normalized award file."""
    print("=== Award Data Analyzer ===\n")
    config = load_config(args.config)
    storage = StorageService(config.output)

    input_file = Path(args.file) if args.file else None
    if input_file is None:
        files = storage.list_award_files()
        if not files:
            raise FileNotFoundError('No award files found. Run "fetch-awards" or "fetch-complete" first.')
        input_file = files[0]
        print(f"Using most recent file: {input_file.name}\n")

    awards = storage.read_normalized_awards(input_file)
    print(f"Loaded {len(awards)} awards\n")

    award_types = args.type.split(',') if args.type else None
    selected = filter_awards(
        awards,
        award_types=award_types,
        agency=args.agency,
        min_amount=args.min_amount,
        max_amount=args.max_amount
    )
    selected = sort_awards(selected, args.sort, args.order)
    print(f"Sorted by {args.sort} ({args.order})\n")

    summary = summarize_awards(len(awards), selected)
    print("=== Analysis Summary ===")
    print(f"Original count: {summary['original_count']}")
    print(f"Filtered count: {summary['filtered_count']}")
    print(f"Reduction: {summary['reduction_percent']:.1f}%")

    if selected:
        print(f"\nTotal amount: ${summary['total_amount']:,.2f}")
        print(f"Average amount: ${summary['average_amount']:,.0f}")
        print(f"\nTop {len(summary['top_awards'])} awards:")
        for i, award in enumerate(summary['top_awards'], start=1):
            print(f"  {i}. {award.recipient_name} - ${award.award_amount:,.2f} ({award.award_type})")

    if args.output:
        with open(args.output, 'w', encoding='utf-8') as f:
            json.dump([award.to_dict() for award in selected], f, ensure_ascii=False, indent=2)
        print(f"\nSaved filtered results to: {args.output}")

    return 0


async def show_config(args):
    """Display the current configuration."""
    config = load_config(args.config)

    print("=== Current Configuration ===\n")
    print("API:")
    print(f"  Base URL: {config.api.base_url}")
    print(f"  Awards Endpoint: {config.api.awards_endpoint}")
    print(f"  Transactions Endpoint: {config.api.transactions_endpoint}")
    print(f"  Timeout: {config.api.timeout}s")
    print(f"  Rate Limit: {config.api.rate_limit}/s")

    print("\nEligibility Criteria:")
    print(f"  Award Types: {', '.join(config.eligibility.award_types)}")
    print(f"  Min Amount: ${config.eligibility.min_amount:,.2f}")
    print(f"  Rolling Days: {config.eligibility.rolling_days}")

    print("\nDate Range:")
    if config.date_range.use_current_date:
        print("  End Date: current date")
    else:
        print(f"  End Date: {config.date_range.fixed_end_date}")

    print("\nOutput:")
    print(f"  Directory: {config.output.directory}")
    print(f"  Pretty Print: {config.output.pretty_print}")
    print(f"  Include Raw: {config.output.include_raw}")

    print("\nPagination:")
    print(f"  Page Size: {config.pagination.page_size}")
    print(f"  Max Records: {config.pagination.max_records}")
    print(f"  Batch Size: {config.pagination.batch_size}")
    print(f"  Max Concurrent Batches: {config.pagination.max_concurrent_batches}")
    print(f"  Abort On Batch Failure: {config.pagination.abort_on_batch_failure}")
    return 0


def add_fetch_arguments(subparser):
    subparser.add_argument(
        '-d', '--days',
        type=positive_int,
        help='Number of days to look back (overrides config)'
    )
    subparser.add_argument(
        '-c', '--config',
        help='Path to config file'
    )
    subparser.add_argument(
        '-o', '--output',
        help='Custom output directory (overrides config)'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='USAspending ETL Pipeline CLI',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Fetch award summaries for the configured window
  usaspending-etl fetch-awards

  # Fetch transactions for the last 7 days
  usaspending-etl fetch-transactions --days 7

  # Two-stage fetch: transactions plus the awards they reference
  usaspending-etl fetch-complete --days 30

  # Filter the most recent award file
  usaspending-etl analyze --type A,B --min-amount 1000000 --sort amount

  # Show configuration
  usaspending-etl config show
        """
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(
        dest='command',
        help='Command to run'
    )

    parser_awards = subparsers.add_parser(
        'fetch-awards',
        help='Fetch award-level summaries (rolled-up data)'
    )
    add_fetch_arguments(parser_awards)
    parser_awards.set_defaults(func=run_fetch_awards)

    parser_transactions = subparsers.add_parser(
        'fetch-transactions',
        help='Fetch transaction-level data (action types, modifications)'
    )
    add_fetch_arguments(parser_transactions)
    parser_transactions.set_defaults(func=run_fetch_transactions)

    parser_complete = subparsers.add_parser(
        'fetch-complete',
        help='Two-stage fetch: transactions and the awards they reference'
    )
    add_fetch_arguments(parser_complete)
    parser_complete.set_defaults(func=run_fetch_complete)

    parser_analyze = subparsers.add_parser(
        'analyze',
        help='Filter and sort existing award data'
    )
    parser_analyze.add_argument('-f', '--file', help='Path to normalized awards JSON file')
    parser_analyze.add_argument('-t', '--type', help='Filter by award types (comma-separated, e.g. A,B,C)')
    parser_analyze.add_argument('-a', '--agency', help='Filter by agency name (substring match)')
    parser_analyze.add_argument('--min-amount', type=float, help='Minimum award amount')
    parser_analyze.add_argument('--max-amount', type=float, help='Maximum award amount')
    parser_analyze.add_argument('-s', '--sort', choices=SORT_FIELDS, default='amount',
                                help='Sort by field')
    parser_analyze.add_argument('--order', choices=['asc', 'desc'], default='desc',
                                help='Sort order')
    parser_analyze.add_argument('-o', '--output', help='Output file path')
    parser_analyze.add_argument('-c', '--config', help='Path to config file')
    parser_analyze.set_defaults(func=run_analyze)

    parser_config = subparsers.add_parser(
        'config',
        help='Display configuration'
    )
    parser_config.add_argument('action', choices=['show'], nargs='?', default='show')
    parser_config.add_argument('-c', '--config', help='Path to config file')
    parser_config.set_defaults(func=show_config)

    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Setup logging
    setup_logging(args.verbose)

    # Run the command
    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        print("\n\nPipeline interrupted by user.")
        return 130
    except ConfigError as e:
        print(f"\nConfiguration error: {e}")
        return 1
    except (APIRequestError, BatchFetchError, FileNotFoundError, ValueError) as e:
        print(f"\nError: {e}")
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
