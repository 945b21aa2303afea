"""Exported lengthwise along X; turned a quarter about +Y like the demo scene."""

COURSE = {
    "name": "Rotated",
    "rotation_y": 90.0,
    "objects": {
        "Ball":  {"min": [ 2.94, 0.0,  -0.06], "max": [ 3.06, 0.12, 0.06]},
        "HOLE":  {"min": [-3.10, -0.05, -0.10], "max": [-2.90, 0.0,  0.10]},
        "Green": {"min": [-4.00, -0.10, -1.00], "max": [ 4.00, 0.0,  1.00]},
    },
}
