#!/usr/bin/env python3
"""
Command Line Interface for gen2-phy
"""

import sys
import json
import logging
import argparse

from . import gen2_constants as c
from .config_utils import load_session_config, build_session
from .errors import Gen2ConfigError
from .receiver import build_link_config

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool):
    root_logger = logging.getLogger()
    level = logging.DEBUG if debug else logging.INFO
    root_logger.setLevel(level)

    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(levelname)s:%(name)s:%(message)s'))
        root_logger.addHandler(handler)
    for handler in root_logger.handlers:
        handler.setLevel(level)


def _cmd_derive(args) -> int:
    link = build_link_config(args.blf, args.tari, args.tari_ratio, args.sample_rate)
    print(json.dumps(link.to_dict(), indent=2))
    return 0


def _cmd_session(args) -> int:
    try:
        config = load_session_config(args.config)
    except FileNotFoundError:
        logger.error(f"Configuration file not found: {args.config}")
        return 1

    session = build_session(config)
    for line in session.summary_lines():
        print(f" - {line}")
    return 0


def _cmd_profiles(args) -> int:
    for blf, tari in c.SUPPORTED_LINK_PROFILES:
        link = build_link_config(blf, tari, 2.0, args.sample_rate)
        rfid, rx = link.rfid, link.rx
        print(f"BLF {blf/1e3:6g}kHz  Tari {tari:5g}us  DR {rfid.div_ratio:6.3f}  "
              f"FrT {rfid.frt:.2f}  T1 [{rfid.durations.t1_min:7.2f}, {rfid.durations.t1_max:7.2f}]us  "
              f"search {rx.search_sample} samples")
    return 0


def main(argv=None) -> int:
    """Main entry point for gen2-phy command"""
    parser = argparse.ArgumentParser(
        description='Gen2 RFID reader timing and receiver configuration',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    derive_parser = subparsers.add_parser('derive', help='Derive link configuration as JSON')
    derive_parser.add_argument('--blf', type=float, required=True, help='Backscatter link frequency (Hz)')
    derive_parser.add_argument('--tari', type=float, required=True, help='Tari (us)')
    derive_parser.add_argument('--tari-ratio', type=float, default=2.0, help='DATA1 / DATA0')
    derive_parser.add_argument('--sample-rate', type=float, default=c.CLOCK_RATE_HZ,
                               help='Tx sample rate (Hz)')
    derive_parser.add_argument('--debug', '-d', action='store_true', help='Enable DEBUG logging')

    session_parser = subparsers.add_parser('session', help='Build a reader session from TOML')
    session_parser.add_argument('--config', '-c', required=True, help='Configuration file path')
    session_parser.add_argument('--debug', '-d', action='store_true', help='Enable DEBUG logging')

    profiles_parser = subparsers.add_parser('profiles', help='List supported BLF/Tari profiles')
    profiles_parser.add_argument('--sample-rate', type=float, default=c.CLOCK_RATE_HZ,
                                 help='Tx sample rate (Hz)')
    profiles_parser.add_argument('--debug', '-d', action='store_true', help='Enable DEBUG logging')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    _configure_logging(args.debug)

    handlers = {
        'derive': _cmd_derive,
        'session': _cmd_session,
        'profiles': _cmd_profiles,
    }
    try:
        return handlers[args.command](args)
    except Gen2ConfigError as e:
        logger.error(f"Invalid link configuration: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
