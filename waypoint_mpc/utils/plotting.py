import logging

import matplotlib
matplotlib.use("Agg")
import matplotlib.animation as animation
import matplotlib.pyplot as plt
import numpy as np

logger = logging.getLogger(__name__)


def road_boundaries(center, width):
    left, right = [], []
    for i in range(len(center)):
        tangent = center[min(i + 1, len(center) - 1)] - center[max(i - 1, 0)]
        tangent = tangent / max(np.linalg.norm(tangent), 1e-8)
        normal = np.array([-tangent[1], tangent[0]])
        left.append(center[i] + normal * width / 2.0)
        right.append(center[i] - normal * width / 2.0)
    return np.asarray(left), np.asarray(right)


def _draw_road(ax, center, width):
    left, right = road_boundaries(center, width)
    ax.plot(left[:, 0], left[:, 1], 'k-', linewidth=2, alpha=0.5)
    ax.plot(right[:, 0], right[:, 1], 'k-', linewidth=2, alpha=0.5)
    ax.plot(center[:, 0], center[:, 1], 'k--', alpha=0.3, linewidth=1, label='Centerline')


def plot(result, center, width, config, save_path="mpc_run.png"):
    """
    Static summary of a simulation run: driven path, every 10th prediction
    horizon and the lateral error over time.

    Args:
        result: SimulationResult
        center: Road centerline points
        width: Road width
        config: ControllerConfig used for the run
        save_path: PNG output path
    """
    s = np.asarray(result.states)

    fig, (ax, ax_err) = plt.subplots(2, 1, figsize=(14, 12), gridspec_kw={"height_ratios": [3, 1]})
    _draw_road(ax, center, width)

    if len(s) > 1:
        ax.plot(s[:, 0], s[:, 1], 'b-', linewidth=2.5, alpha=0.9, label='Actual Trajectory')
        ax.plot(s[0, 0], s[0, 1], 'go', markersize=12, label='Start', markeredgecolor='darkgreen', markeredgewidth=2)
        ax.plot(s[-1, 0], s[-1, 1], 'ro', markersize=12, label='End', markeredgecolor='darkred', markeredgewidth=2)

    if result.predictions:
        horizon_interval = max(1, len(result.predictions) // 10)
        for i in range(0, len(result.predictions), horizon_interval):
            horizon = result.predictions[i]
            ax.plot(horizon[:, 0], horizon[:, 1], 'r--', alpha=0.6, linewidth=1.5,
                    label='Prediction Horizon' if i == 0 else '')

    ax.set_xlabel('X [m]', fontsize=12, fontweight='bold')
    ax.set_ylabel('Y [m]', fontsize=12, fontweight='bold')
    ax.set_title('MPC Waypoint Tracking: Actual Path with Prediction Horizons', fontsize=14, fontweight='bold')
    ax.axis('equal')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='upper right', fontsize=9)

    summary = result.summary()
    info_text = (
        f"Steps: {summary['steps']}\n"
        f"Mean lateral error: {summary['mean_lateral_error']:.2f} m\n"
        f"Max lateral error: {summary['max_lateral_error']:.2f} m\n"
        f"Solve failures: {summary['failures']}\n"
        f"Prediction Horizon: {config.horizon.N} steps ({config.horizon.duration:.1f}s)\n"
        f"Reference Speed: {config.reference_speed}"
    )
    ax.text(0.02, 0.98, info_text, transform=ax.transAxes,
            bbox=dict(boxstyle='round', facecolor='lightblue', alpha=0.8),
            verticalalignment='top', fontsize=10, fontweight='bold')

    ax_err.plot(result.lateral_errors, 'b-')
    ax_err.axhline(0.0, color='k', linewidth=0.8)
    ax_err.set_xlabel('Control step')
    ax_err.set_ylabel('Lateral error [m]')
    ax_err.grid(True, alpha=0.3)

    plt.tight_layout()
    plt.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.close(fig)
    logger.info("Trajectory plot saved as %s", save_path)
    return save_path


def create_trajectory_gif(result, center, width, save_path="mpc_trajectory.gif", interval=50, fps=20):
    """
    Animated GIF of the run with the prediction horizon of each frame.

    Args:
        result: SimulationResult
        center: Road centerline points
        width: Road width
        save_path: Path to save the GIF file
        interval: Interval between frames in milliseconds
        fps: Frames per second for the GIF
    """
    s = np.asarray(result.states)
    fig, ax = plt.subplots(figsize=(12, 8))

    def animate_frame(frame_idx):
        ax.clear()
        current_states = s[:frame_idx + 1]
        _draw_road(ax, center, width)

        if len(current_states) > 1:
            ax.plot(current_states[:, 0], current_states[:, 1], 'b-', linewidth=2.5, alpha=0.9, label='Actual Trajectory')

        current_x, current_y, current_psi = current_states[-1, 0], current_states[-1, 1], current_states[-1, 2]
        ax.plot(current_x, current_y, 'ro', markersize=8, label='Current Position')
        arrow_length = 3.0
        ax.arrow(current_x, current_y, arrow_length * np.cos(current_psi), arrow_length * np.sin(current_psi),
                 head_width=0.8, head_length=0.6, fc='red', ec='red', alpha=0.7)

        if frame_idx < len(result.predictions):
            horizon = result.predictions[frame_idx]
            ax.plot(horizon[:, 0], horizon[:, 1], 'r--', linewidth=2, alpha=0.7, label='Prediction Horizon')
            ax.plot(horizon[:, 0], horizon[:, 1], 'r.', markersize=3, alpha=0.5)

        ax.set_xlabel('X [m]', fontsize=12, fontweight='bold')
        ax.set_ylabel('Y [m]', fontsize=12, fontweight='bold')
        ax.set_title(f'MPC Waypoint Tracking - Frame {frame_idx + 1}/{len(s)}', fontsize=14, fontweight='bold')
        ax.axis('equal')
        ax.grid(True, alpha=0.3)
        ax.legend(loc='upper right', fontsize=10)

        speed = current_states[-1, 3]
        info_text = f'Progress: {(frame_idx + 1) / len(s) * 100:.1f}%\nSpeed: {speed:.1f}'
        ax.text(0.02, 0.98, info_text, transform=ax.transAxes,
                bbox=dict(boxstyle='round', facecolor='lightblue', alpha=0.8),
                verticalalignment='top', fontsize=10, fontweight='bold')

    logger.info("Creating animated GIF with %d frames...", len(s))
    anim = animation.FuncAnimation(fig, animate_frame, frames=len(s), interval=interval, repeat=True, blit=False)
    anim.save(save_path, writer='pillow', fps=fps, dpi=100)
    plt.close(fig)
    logger.info("Animated GIF saved as %s", save_path)
    return save_path
