"""Straight putt: tee and cup on the center line, six units apart."""

COURSE = {
    "name": "Straight",
    "objects": {
        "Ball":  {"min": [-0.06, 0.0,   2.94], "max": [0.06, 0.12,  3.06]},
        "Hole":  {"min": [-0.10, -0.05, -3.10], "max": [0.10, 0.0, -2.90]},
        "Green": {"min": [-1.00, -0.10, -4.00], "max": [1.00, 0.0,  4.00]},
    },
}
