"""
Closed-loop MPC simulation with command line interface
"""
import argparse
import logging

from waypoint_mpc.config.params import ControllerConfig
from waypoint_mpc.sim.runner import run_simulation
from waypoint_mpc.sim.track import circular_track, sinusoidal_track
from waypoint_mpc.utils.log import setup_logging
from waypoint_mpc.utils.plotting import create_trajectory_gif, plot

TRACKS = {
    "sine": (sinusoidal_track, False),
    "circle": (circular_track, True),
}


def main(argv=None):
    parser = argparse.ArgumentParser(description='MPC Waypoint Tracking Simulation')
    parser.add_argument('--track', type=str, default='sine', choices=sorted(TRACKS),
                        help='Road shape')
    parser.add_argument('--steps', type=int, default=300, help='Number of control cycles')
    parser.add_argument('--speed', type=float, default=None, help='Reference speed')
    parser.add_argument('--horizon', type=int, default=None, help='MPC prediction horizon')
    parser.add_argument('--latency', type=float, default=None, help='Actuation delay (s)')
    parser.add_argument('--output', type=str, default='mpc_run.png', help='Summary plot filename')
    parser.add_argument('--gif', type=str, default=None, help='Also write an animated GIF here')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    config = ControllerConfig.from_overrides(horizon=args.horizon, latency=args.latency, speed=args.speed)

    make_track, closed = TRACKS[args.track]
    center, width = make_track()

    logging.info(f"Starting {args.track} simulation...")
    logging.info(f"Reference speed: {config.reference_speed}, horizon: {config.horizon.N} x {config.horizon.dt}s")

    result = run_simulation(config, center, steps=args.steps, closed=closed)
    summary = result.summary()
    logging.info(
        "Simulation complete: %d steps, mean lateral error %.2f m, max %.2f m, %d solve failures",
        summary["steps"], summary["mean_lateral_error"], summary["max_lateral_error"], summary["failures"],
    )

    plot(result, center, width, config, save_path=args.output)
    if args.gif:
        create_trajectory_gif(result, center, width, save_path=args.gif)
    return result


if __name__ == "__main__":
    main()
