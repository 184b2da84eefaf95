#!/usr/bin/env python3
"""
Device Value Average CLI
Provides commands for running the pipeline and printing its results
"""

import argparse
import logging
import os
import sys

from dvalueavg.config import LOG_LEVEL, PipelineConfig
from dvalueavg.errors import JobFailedError, MalformedRecordError
from dvalueavg.pipeline import DeviceValueAveragePipeline, read_results


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def run_pipeline(args):
    """Run the join and average jobs"""
    try:
        config = PipelineConfig.from_env(
            work_dir=args.work_dir,
            num_map_tasks=args.num_map_tasks,
            num_reduce_tasks=args.num_reduce_tasks,
            max_workers=args.max_workers,
            use_combiner=False if args.no_combiner else None,
            skip_malformed=True if args.skip_malformed else None,
            keep_temp=True if args.keep_temp else None
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    pipeline = DeviceValueAveragePipeline(config)
    try:
        result = pipeline.run(args.devices, args.values, args.output)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1
    except JobFailedError as e:
        print(f"Error: {e}")
        return 1

    print(f"✓ Pipeline completed")
    print(f"  Output path: {result.output_path}")
    print(f"  Rows: {len(result.rows)}")

    for stage, metrics in result.metrics.items():
        if metrics is None:
            continue
        print(f"  {stage}: {metrics.total_time_seconds:.3f}s, "
              f"{metrics.map_input_records} records in, "
              f"{metrics.reduce_output_records} records out, "
              f"{metrics.malformed_records_skipped} malformed skipped")
        if args.metrics_dir:
            metrics.save_to_file(os.path.join(args.metrics_dir, f"{stage}_metrics.json"))

    if args.metrics_dir:
        print(f"  Metrics written to {args.metrics_dir}")
    return 0


def show_results(args):
    """Print the final rows in output order"""
    if not os.path.isdir(args.output):
        print(f"Error: Output path {args.output} not found")
        return 1

    try:
        rows = read_results(args.output)
    except MalformedRecordError as e:
        print(f"Error reading results: {e}")
        return 1

    if args.limit is not None:
        rows = rows[:args.limit]
    for row in rows:
        print(row.to_line())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='dvalueavg',
        description='Average device readings per date and device type',
        epilog='Example: %(prog)s run device.txt dvalues.txt /tmp/dvalueavg-out'
    )
    parser.add_argument('--log-level', default=None,
                        help=f'Logging level (default: DVALUEAVG_LOG_LEVEL or {LOG_LEVEL})')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # run command
    run_parser = subparsers.add_parser(
        'run',
        help='Run the pipeline',
        description='Join the device registry with the readings and average them per date and type'
    )
    run_parser.add_argument('devices', help='Device registry file (id,type lines)')
    run_parser.add_argument('values', help='Device values file (id,date,value lines)')
    run_parser.add_argument('output', help='Output directory, replaced if it exists')
    run_parser.add_argument('--num-map-tasks', type=int, help='Map tasks per input file (default: 2)')
    run_parser.add_argument('--num-reduce-tasks', type=int, help='Number of reduce tasks (default: 2)')
    run_parser.add_argument('--max-workers', type=int, help='Worker threads (default: 4)')
    run_parser.add_argument('--work-dir', help='Directory for temporary data')
    run_parser.add_argument('--no-combiner', action='store_true', help='Disable the average combiner')
    run_parser.add_argument('--skip-malformed', action='store_true',
                            help='Skip unparseable records instead of failing the job')
    run_parser.add_argument('--keep-temp', action='store_true', help='Keep the joined data and partition files')
    run_parser.add_argument('--metrics-dir', help='Write per-job metrics as JSON to this directory')
    run_parser.set_defaults(func=run_pipeline)

    # show-results command
    results_parser = subparsers.add_parser(
        'show-results',
        help='Print results',
        description='Print the rows of a finished run, newest date first'
    )
    results_parser.add_argument('output', help='Output directory of a finished run')
    results_parser.add_argument('--limit', type=int, help='Print at most this many rows')
    results_parser.set_defaults(func=show_results)

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    # If no command specified, print help
    if not hasattr(args, 'func'):
        parser.print_help()
        return 1

    configure_logging(args.log_level or LOG_LEVEL)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
