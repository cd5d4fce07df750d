import numpy as np


def circular_track(radius=60.0, width=8.0, points=120):
    theta = np.linspace(0, 2*np.pi, points, endpoint=False)
    center = np.vstack([radius*np.cos(theta), radius*np.sin(theta)]).T
    return center, width


def sinusoidal_track(length=600.0, amplitude=12.0, width=8.0, points=121):
    """
    Create a sinusoidal road

    Args:
        length: Total length of the road (meters)
        amplitude: Amplitude of the sinusoid (meters)
        width: Width of the road (meters)
        points: Number of points along the centerline

    Returns:
        center: Road centerline points [N, 2]
        width: Road width
    """
    x = np.linspace(0, length, points)
    y = amplitude * np.sin(2 * np.pi * x / (length / 2))
    center = np.vstack([x, y]).T
    return center, width


def nearest_index(center, position):
    return int(np.argmin(np.linalg.norm(center - np.asarray(position)[:2], axis=1)))


def waypoints_ahead(center, position, count=6, closed=False):
    """
    Waypoints the simulator would report: the nearest center point, one behind
    it, and the rest ahead. Returns (xs, ys) in world frame.
    """
    idx = nearest_index(center, position) - 1
    if closed:
        indices = [(idx + i) % len(center) for i in range(count)]
    else:
        start = int(np.clip(idx, 0, max(len(center) - count, 0)))
        indices = list(range(start, min(start + count, len(center))))
    pts = center[indices]
    return pts[:, 0], pts[:, 1]


def lateral_offset(center, position, closed=False):
    """Signed distance from position to the center polyline (positive on the left)."""
    p = np.asarray(position, dtype=float)[:2]
    n = len(center)
    segments = range(n) if closed else range(n - 1)
    best = None
    for i in segments:
        a = center[i]
        b = center[(i + 1) % n]
        t = b - a
        length_sq = float(t @ t)
        if length_sq < 1e-12:
            continue
        s = float(np.clip((p - a) @ t / length_sq, 0.0, 1.0))
        d = p - (a + s * t)
        dist = float(np.hypot(d[0], d[1]))
        if best is None or dist < abs(best):
            cross = t[0] * d[1] - t[1] * d[0]
            best = dist if cross >= 0 else -dist
    return 0.0 if best is None else best


def start_pose(center):
    """Pose at the first center point, heading along the first segment."""
    t = center[1] - center[0]
    return float(center[0, 0]), float(center[0, 1]), float(np.arctan2(t[1], t[0]))
