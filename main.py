#!/usr/bin/env python3
"""
SNMP interface bandwidth monitor
Usage:
    python main.py <target> [-c community] [-i interval] [-p pattern,pattern]
    python main.py --simulate [-i interval] [-p pattern,pattern]
    python main.py --help
"""

import argparse
import copy
import logging
import os
import signal
import sys

import yaml

from bwmon import BandwidthMonitor, BwmonError, ConfigurationError, TransportError
from bwmon.selector import compile_patterns, parse_pattern_list
from bwmon.simulated import SimulatedSampleSource
from bwmon.snmp import SnmpClient, SnmpSampleSource
from bwmon.sources import SampleSource
from bwmon.table import TerminalDisplay

DEFAULTS = {
    "target": {
        "host": None,
        "port": 161,
        "community": "public",
        "timeout": 1.0,
        "retries": 3,
        "max_repetitions": 25,
    },
    "polling": {"interval_seconds": 2},
    "patterns": [".*"],
    "display": {"clear_screen": True},
    "simulate": {"enabled": False, "interfaces": None},
}


def setup_logging(level_name: str):
    level = getattr(logging, level_name.upper(), logging.WARNING)
    # stderr, so log lines do not land inside the redrawn table
    logging.basicConfig(
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        level=level,
        stream=sys.stderr,
    )


def _merge(base: dict, override: dict):
    for key, val in override.items():
        if isinstance(val, dict) and isinstance(base.get(key), dict):
            _merge(base[key], val)
        else:
            base[key] = val


def load_config(path: str = None) -> dict:
    config = copy.deepcopy(DEFAULTS)

    if path:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"{path}: top level must be a mapping")
        _merge(config, raw)

    overrides = {
        "BWMON_TARGET": ("target", "host"),
        "BWMON_PORT": ("target", "port"),
        "BWMON_COMMUNITY": ("target", "community"),
        "BWMON_INTERVAL": ("polling", "interval_seconds"),
        "BWMON_PATTERNS": None,  # handled separately
        "BWMON_LOG_LEVEL": None,  # handled separately
    }

    for env_key, cfg_path in overrides.items():
        val = os.environ.get(env_key)
        if val is None or cfg_path is None:
            continue
        section, key = cfg_path
        if key in ("port", "interval_seconds"):
            try:
                val = int(val)
            except ValueError:
                pass
        config[section][key] = val
        logging.debug("Env override: %s.%s = %s", section, key, val)

    patterns = os.environ.get("BWMON_PATTERNS")
    if patterns is not None:
        config["patterns"] = parse_pattern_list(patterns)
        logging.debug("Env override: patterns = %s", config["patterns"])

    if isinstance(config["patterns"], str):
        config["patterns"] = parse_pattern_list(config["patterns"])

    return config


def apply_args(config: dict, args: argparse.Namespace):
    """Command-line flags win over the file and the environment."""
    if args.target is not None:
        config["target"]["host"] = args.target
    if args.community is not None:
        config["target"]["community"] = args.community
    if args.port is not None:
        config["target"]["port"] = args.port
    if args.timeout is not None:
        config["target"]["timeout"] = args.timeout
    if args.retries is not None:
        config["target"]["retries"] = args.retries
    if args.interval is not None:
        config["polling"]["interval_seconds"] = args.interval
    if args.patterns is not None:
        config["patterns"] = parse_pattern_list(args.patterns)
    if args.simulate:
        config["simulate"]["enabled"] = True
    if args.no_clear:
        config["display"]["clear_screen"] = False


def _is_int(val) -> bool:
    return isinstance(val, int) and not isinstance(val, bool)


def _validate_sim_interfaces(ifaces) -> list[str]:
    if ifaces is None:
        return []
    if not isinstance(ifaces, list):
        return ["simulate.interfaces must be a list of interfaces"]

    errors = []
    for i, iface in enumerate(ifaces):
        if not isinstance(iface, dict):
            errors.append(f"Interface [{i}] must be a mapping, got {iface!r}")
            continue
        if "index" not in iface:
            errors.append(f"Interface [{i}] missing 'index'")
        elif not _is_int(iface["index"]):
            errors.append(f"Interface [{i}] index must be an integer, got {iface['index']!r}")

        speed = iface.get("speed", 1)
        if isinstance(speed, bool) or not isinstance(speed, (int, float)) or speed < 0:
            errors.append(f"Interface [{i}] speed must be a non-negative number, got {speed!r}")

        util = iface.get("utilization", 0.0)
        if isinstance(util, bool) or not isinstance(util, (int, float)) or not 0 <= util <= 1:
            errors.append(f"Interface [{i}] utilization must be between 0 and 1, got {util!r}")

        for key in ("in_octets", "out_octets"):
            if key in iface and (not _is_int(iface[key]) or iface[key] < 0):
                errors.append(f"Interface [{i}] {key} must be a non-negative integer")
    return errors


def validate_config(config: dict) -> list[str]:
    """Return every problem found; an empty list means the config is usable."""
    errors = []
    target = config.get("target", {})
    simulate = config.get("simulate", {}).get("enabled", False)

    if not simulate and not target.get("host"):
        errors.append("Missing target address")

    port = target.get("port")
    if not _is_int(port) or not 0 < port < 65536:
        errors.append(f"target.port must be 1-65535, got {port!r}")

    timeout = target.get("timeout")
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        errors.append(f"target.timeout must be positive, got {timeout!r}")

    retries = target.get("retries")
    if not _is_int(retries) or retries < 0:
        errors.append(f"target.retries must be a non-negative integer, got {retries!r}")

    max_rep = target.get("max_repetitions")
    if not _is_int(max_rep) or max_rep < 1:
        errors.append(f"target.max_repetitions must be a positive integer, got {max_rep!r}")

    interval = config.get("polling", {}).get("interval_seconds")
    if not _is_int(interval) or interval <= 0:
        errors.append(f"polling.interval_seconds must be a positive integer, got {interval!r}")

    patterns = config.get("patterns")
    if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
        errors.append("patterns must be a list of regular expressions")
    else:
        try:
            compile_patterns(patterns)
        except ConfigurationError as e:
            errors.append(str(e))

    errors.extend(_validate_sim_interfaces(config.get("simulate", {}).get("interfaces")))

    if errors:
        for e in errors:
            logging.error("Config error: %s", e)
    else:
        logging.info("Config validation passed.")
    return errors


def build_source(config: dict) -> tuple[SampleSource, str]:
    """Return the sample source and the label shown in the table banner."""
    if config["simulate"]["enabled"]:
        return SimulatedSampleSource(config["simulate"].get("interfaces")), "simulator"

    target = config["target"]
    client = SnmpClient(
        host=target["host"],
        port=target["port"],
        community=target["community"],
        timeout=target["timeout"],
        retries=target["retries"],
        max_repetitions=target["max_repetitions"],
    )
    client.connect()
    return SnmpSampleSource(client), target["host"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Per-interface bandwidth monitor over SNMPv2c",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variable overrides:
  BWMON_CONFIG       Path to YAML config file
  BWMON_TARGET       Device hostname/IP
  BWMON_PORT         SNMP UDP port (default 161)
  BWMON_COMMUNITY    SNMP community (default public)
  BWMON_INTERVAL     Polling interval in seconds (default 2)
  BWMON_PATTERNS     Comma-separated interface name patterns
  BWMON_LOG_LEVEL    Log level: DEBUG|INFO|WARNING|ERROR
        """,
    )
    parser.add_argument("target", nargs="?", default=None, help="Device address")
    parser.add_argument("-c", "--community", default=None,
                        help="SNMP community (default: public)")
    parser.add_argument("-i", "--interval", type=int, default=None,
                        help="Polling interval in seconds (default: 2)")
    parser.add_argument("-p", "--patterns", default=None,
                        help="Comma-separated interface name patterns (default: .*)")
    parser.add_argument("--port", type=int, default=None,
                        help="SNMP UDP port (default: 161)")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Seconds to wait for each SNMP response (default: 1.0)")
    parser.add_argument("--retries", type=int, default=None,
                        help="SNMP retries per request (default: 3)")
    parser.add_argument(
        "--config",
        default=os.environ.get("BWMON_CONFIG"),
        help="Path to YAML config file",
    )
    parser.add_argument("--simulate", action="store_true",
                        help="Poll simulated interfaces instead of a device")
    parser.add_argument("--no-clear", action="store_true",
                        help="Append frames instead of redrawing the screen")
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate config and exit without polling",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("BWMON_LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: WARNING)",
    )
    return parser


def main(argv: list[str] = None):
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level)

    try:
        config = load_config(args.config)
    except FileNotFoundError:
        logging.error("Config file not found: %s", args.config)
        sys.exit(2)
    except yaml.YAMLError as e:
        logging.error("YAML parse error: %s", e)
        sys.exit(2)
    except ConfigurationError as e:
        logging.error("Config error: %s", e)
        sys.exit(2)

    apply_args(config, args)

    if validate_config(config):
        sys.exit(2)

    if args.validate:
        print("Config is valid. Exiting (--validate mode).")
        sys.exit(0)

    try:
        source, label = build_source(config)
    except TransportError as e:
        logging.error("Transport error: %s", e)
        sys.exit(1)

    monitor = BandwidthMonitor(
        source,
        config["patterns"],
        config["polling"]["interval_seconds"],
        display=TerminalDisplay(clear_screen=config["display"]["clear_screen"]),
        target=label,
    )

    def _shutdown(sig, frame):
        logging.info("Received signal %s, shutting down...", signal.Signals(sig).name)
        monitor.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        monitor.start()
    except TransportError as e:
        logging.error("Transport error: %s", e)
        sys.exit(1)
    except BwmonError as e:
        logging.error("%s", e)
        sys.exit(2)
    finally:
        source.close()


if __name__ == "__main__":
    main()
