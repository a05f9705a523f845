# ha_powerflow/cli.py
import argparse

def build_parser():
    parser = argparse.ArgumentParser(
        prog="ha-powerflow",
        description="Home Assistant power-flow monitor"
    )

    parser.add_argument(
        "--config",
        default="ha_powerflow.conf",
        help="Path to configuration file"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose debug logging"
    )

    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress stdout output (cron-friendly)"
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit JSON instead of human-readable text"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # One-shot refresh
    sub.add_parser("once", help="Fetch every configured entity once and print the result")

    # Scheduled refresh
    cmd_watch = sub.add_parser(
        "watch",
        help="Refresh on the configured interval and print every snapshot",
    )
    cmd_watch.add_argument(
        "--count",
        type=int,
        default=None,
        help="Stop after this many published snapshots",
    )

    # Simulation-driven refresh
    cmd_sim = sub.add_parser(
        "simulate",
        help="Run a one-shot refresh using simulated entity states",
    )
    cmd_sim.add_argument(
        "--scenario",
        help="Override [simulation] scenario name",
    )

    sub.add_parser("test-connection", help="Check the Home Assistant URL and access token")

    return parser
