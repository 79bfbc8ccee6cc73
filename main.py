#!/usr/bin/env python3
"""
Face attendance command line entry point.

Serves the REST API or prints attendance reports from the configured store.
"""
import argparse
import sys

from attendance.attendance_system import AttendanceSystem
from attendance.reports import EXPORT_FORMATS
from storage.kv_store import create_store
from utils.config import SUPPORTED_BACKENDS, config, get_config_summary, validate_config
from utils.logger import logger


def print_status(system: AttendanceSystem):
    status = system.get_system_status()
    print("=" * 60)
    print(f"🟢 Status: {status['status']}")
    print(f"💾 Store: {status['store_backend']}")
    print(f"👥 Registered users: {status['registered_identities']}")
    print(f"📋 Attendance records: {status['attendance_records']}")
    print(f"🚨 Security events: {status['security_events']}")
    print("-" * 60)
    for key, value in get_config_summary().items():
        print(f"   {key}: {value}")
    print("=" * 60)


def print_overview(system: AttendanceSystem):
    overview = system.overview()
    print("=" * 60)
    print(f"📅 Today: {overview['today']}")
    print(f"✅ Present today: {overview['today_count']}")
    print(f"📋 Total records: {overview['total_count']}")
    print(f"👥 Registered users: {overview['registered_count']}")
    print(f"📊 Average attendance: {overview['average_attendance_percentage']}%")
    print("=" * 60)


def print_report(system: AttendanceSystem):
    report = system.individual_report()
    if not report:
        print("No registered users.")
        return

    for entry in report:
        print(f"\n{entry['name']}: {entry['total_days']} days present, {entry['percentage']}% attendance")
        for record in entry['records']:
            print(f"   {record['date']} {record['time']}  {record['status']}  ({record['confidence']}%)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Face Attendance System",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --serve                         # Start the REST API
  python main.py --status                        # Print system status and configuration
  python main.py --overview                      # Print today's overview
  python main.py --report                        # Per-person attendance report
  python main.py --export out.xlsx --format xlsx # Export attendance records
  python main.py --clear --yes                   # Delete all stored data
        """
    )
    parser.add_argument("--serve", "-s", action="store_true",
                        help="Start the REST API server")
    parser.add_argument("--host", type=str,
                        help=f"API host (default: {config.api.host})")
    parser.add_argument("--port", "-p", type=int,
                        help=f"API port (default: {config.api.port})")
    parser.add_argument("--status", action="store_true",
                        help="Print system status and configuration")
    parser.add_argument("--report", "-r", action="store_true",
                        help="Print the individual attendance report")
    parser.add_argument("--overview", action="store_true",
                        help="Print the attendance overview")
    parser.add_argument("--export", "-e", type=str, metavar="PATH",
                        help="Export attendance records to PATH")
    parser.add_argument("--format", "-f", choices=EXPORT_FORMATS,
                        help="Export format (default: from file extension, else csv)")
    parser.add_argument("--clear", action="store_true",
                        help="Delete all identities, attendance records and security events")
    parser.add_argument("--yes", "-y", action="store_true",
                        help="Confirm destructive operations")
    parser.add_argument("--store", type=str,
                        help=f"Store path (default: {config.storage.path})")
    parser.add_argument("--backend", "-b", choices=SUPPORTED_BACKENDS,
                        help=f"Store backend (default: {config.storage.backend})")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose logging")
    return parser


def main(argv=None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        config.logging.log_level = "DEBUG"
        logger.set_level("DEBUG")

    if args.clear and not args.yes:
        print("Error: --clear deletes all data; pass --yes to confirm")
        return 1

    if not (args.serve or args.status or args.report or args.overview or args.export or args.clear):
        parser.print_help()
        return 0

    if not validate_config():
        print("Error: invalid configuration, see log for details")
        return 1

    backend = args.backend or config.storage.backend
    store_path = args.store or config.storage.path

    try:
        system = AttendanceSystem(create_store(backend, store_path))
    except ValueError as e:
        print(f"Error: {e}")
        logger.error(f"Failed to open store {store_path}: {e}")
        return 1

    try:
        if args.clear:
            cleared = system.clear_all_data()
            print(f"🗑️  Cleared {cleared['identities']} users and {cleared['records']} attendance records")

        if args.status:
            print_status(system)

        if args.overview:
            print_overview(system)

        if args.report:
            print_report(system)

        if args.export:
            try:
                path = system.export(args.export, fmt=args.format)
            except ValueError as e:
                print(f"Error: {e}")
                return 1
            print(f"📁 Exported attendance to {path}")

        if args.serve:
            from api.api_server import create_app, run_server

            print(f"🌐 Starting API server on {args.host or config.api.host}:{args.port or config.api.port}")
            run_server(create_app(system), host=args.host, port=args.port)

    except KeyboardInterrupt:
        print("\n⏹️  Interrupted by user")
        logger.info("Face attendance interrupted by user")
    finally:
        system.close()

    return 0


def run():
    """Console script entry point: run main() and flush the logs on exit."""
    try:
        exit_code = main()
    except Exception as e:
        print(f"Unexpected error: {e}")
        exit_code = 1
    finally:
        logger.shutdown()
    sys.exit(exit_code)


if __name__ == "__main__":
    run()
