"""
Command-line interface for the LibreView -> Nightscout bridge
"""

import argparse
import sys
import json
import logging
from pathlib import Path
from typing import Optional

from ..core.config import BridgeConfig, load_config_from_env
from ..core.engine import BridgeEngine
from ..core.exceptions import LvBridgeError
from ..io.session_store import save_session, restore_session, save_report, DEFAULT_SESSION_FILE, DEFAULT_REPORT_FILE
from ..sync.scheduler import PeriodicRunner
from ..utils.logging_utils import setup_logger, mask_secrets
from ..utils.env_utils import create_env_template, get_env_file_locations, load_env_file, read_env

logger = logging.getLogger(__name__)


def setup_cli_logging(verbose: bool = False, log_file: Optional[Path] = None, level: Optional[str] = None):
    """Setup logging for CLI; --verbose wins over LVBRIDGE_LOG_LEVEL"""
    setup_logger(
        name='lvBridge',
        level=logging.DEBUG if verbose else (level or logging.INFO),
        log_file=log_file
    )


def create_parser() -> argparse.ArgumentParser:
    """Create CLI argument parser"""
    parser = argparse.ArgumentParser(
        description='lvBridge: LibreView to Nightscout synchronization',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create .env template file for credentials
  python -m lvBridge.cli.main create-env

  # Log in and keep the session in session.json
  python -m lvBridge.cli.main login

  # Fetch and convert new readings without uploading them
  python -m lvBridge.cli.main fetch

  # Fetch, convert and upload once
  python -m lvBridge.cli.main run

  # Keep syncing every LVBRIDGE_INTERVAL seconds (default command)
  python -m lvBridge.cli.main loop
        """
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )

    parser.add_argument(
        '--env-file',
        help='Path to a .env file (default: search standard locations)'
    )

    parser.add_argument(
        '--session-file',
        default=str(DEFAULT_SESSION_FILE),
        help=f'Session file used by login/fetch/run (default: {DEFAULT_SESSION_FILE})'
    )

    parser.add_argument(
        '--log-file',
        help='Also write logs to this file'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    subparsers.add_parser('login', help='Log in and save the session')

    fetch_parser = subparsers.add_parser('fetch', help='Fetch and convert data without uploading')
    fetch_parser.add_argument(
        '--report-file',
        default=str(DEFAULT_REPORT_FILE),
        help=f'Where to save the raw report data (default: {DEFAULT_REPORT_FILE})'
    )

    run_parser = subparsers.add_parser('run', help='Fetch, convert and upload once')
    run_parser.add_argument(
        '--report-file',
        default=str(DEFAULT_REPORT_FILE),
        help=f'Where to save the raw report data (default: {DEFAULT_REPORT_FILE})'
    )

    loop_parser = subparsers.add_parser('loop', help='Sync periodically until interrupted')
    loop_parser.add_argument(
        '--interval',
        type=int,
        help='Seconds between runs (default: LVBRIDGE_INTERVAL or 3600)'
    )

    env_parser = subparsers.add_parser('create-env', help='Create .env template file')
    env_parser.add_argument(
        '--output',
        default='.env',
        help='Output path for .env file (default: .env)'
    )
    env_parser.add_argument(
        '--force',
        action='store_true',
        help='Overwrite existing .env file'
    )

    return parser


def load_config(args) -> BridgeConfig:
    config = load_config_from_env(Path(args.env_file) if args.env_file else None)
    mask_secrets(config.login.password, config.login.trusted_device_token, config.nightscout.api_secret)
    if not config.login.is_valid() and not config.login.has_credential_bundle():
        print("Error: LibreView credentials not configured. Run 'create-env' for a template.")
        sys.exit(1)
    return config


def build_engine(args, config: BridgeConfig) -> BridgeEngine:
    state = restore_session(Path(args.session_file))
    return BridgeEngine(config, state=state)


def cmd_login(args):
    """Log in and save the session"""
    config = load_config(args)
    engine = build_engine(args, config)
    try:
        engine.login()
    except Exception as e:
        logger.error(f"Login failed: {e}")
        sys.exit(1)
    save_session(engine.state, Path(args.session_file))
    print(f"✓ Logged in to {engine.state.server}, token valid until {engine.state.token_expires}")


def cmd_fetch(args):
    """Fetch and convert without uploading"""
    config = load_config(args)
    engine = build_engine(args, config)
    try:
        payload = save_report(engine.fetch(), Path(args.report_file))
        entries = engine.convert(payload)
    except Exception as e:
        logger.error(f"Fetch failed: {e}")
        sys.exit(1)
    print(json.dumps(entries, indent=2))
    save_session(engine.state, Path(args.session_file))


def cmd_run(args):
    """Fetch, convert and upload once"""
    config = load_config(args)
    try:
        config.validate_for_upload()
    except LvBridgeError as e:
        print(f"Error: {e}")
        sys.exit(1)

    engine = build_engine(args, config)
    try:
        result = engine.sync(on_payload=lambda payload: save_report(payload, Path(args.report_file)))
    except Exception as e:
        logger.error(f"Run failed: {e}")
        sys.exit(1)
    print(json.dumps(result, indent=2, default=str))
    save_session(engine.state, Path(args.session_file))


def cmd_loop(args):
    """Sync periodically until interrupted"""
    config = load_config(args)
    try:
        config.validate_for_upload()
    except LvBridgeError as e:
        print(f"Error: {e}")
        sys.exit(1)

    engine = BridgeEngine(config)
    runner = PeriodicRunner(engine, interval=getattr(args, 'interval', None) or config.interval)
    logger.info(f"Syncing every {runner.interval}s, press Ctrl+C to stop")
    try:
        runner.run_forever()
    except KeyboardInterrupt:
        runner.stop()


def cmd_create_env(args):
    """Create .env template file"""
    output_path = Path(args.output)

    if output_path.exists() and not args.force:
        print(f"Error: {output_path} already exists. Use --force to overwrite.")
        sys.exit(1)

    created_path = create_env_template(output_path)
    print(f"✓ Created .env template at: {created_path}")
    print("\nThe .env file will be searched in the following locations:")
    for i, location in enumerate(get_env_file_locations(), 1):
        print(f"  {i}. {location}")


def main(argv=None):
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    load_env_file(Path(args.env_file) if args.env_file else None)
    setup_cli_logging(
        args.verbose,
        Path(args.log_file) if args.log_file else None,
        read_env('LVBRIDGE_LOG_LEVEL')
    )

    commands = {
        'login': cmd_login,
        'fetch': cmd_fetch,
        'run': cmd_run,
        'loop': cmd_loop,
        'create-env': cmd_create_env,
    }
    commands[args.command or 'loop'](args)


if __name__ == '__main__':
    main()
