"""
Run the MPC controller as a websocket server for the driving simulator.

    python -m waypoint_mpc.serve --port 4567 --latency 0.1
"""
import argparse
import asyncio
import logging
import sys

from waypoint_mpc.bridge.server import DEFAULT_HOST, DEFAULT_PORT, TelemetryServer
from waypoint_mpc.config.params import ControllerConfig
from waypoint_mpc.utils.log import setup_logging


def build_parser():
    parser = argparse.ArgumentParser(description="MPC waypoint-tracking controller server")
    parser.add_argument("--host", type=str, default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--horizon", type=int, default=None, help="MPC prediction horizon (steps)")
    parser.add_argument("--dt", type=float, default=None, help="MPC step duration (s)")
    parser.add_argument("--latency", type=float, default=None, help="Actuation-to-effect delay (s)")
    parser.add_argument("--speed", type=float, default=None, help="Reference speed")
    parser.add_argument("--simulate-latency", action="store_true",
                        help="Delay every reply by the configured latency")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging with timestamps")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    # Configuration errors are fatal: let them surface before the server starts
    config = ControllerConfig.from_overrides(
        horizon=args.horizon, dt=args.dt, latency=args.latency, speed=args.speed
    )
    logging.info(
        "MPC horizon %d x %.3fs, latency %.3fs, reference speed %.1f",
        config.horizon.N, config.horizon.dt, config.latency, config.reference_speed,
    )

    server = TelemetryServer(config, host=args.host, port=args.port, simulate_latency=args.simulate_latency)
    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        logging.info("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
