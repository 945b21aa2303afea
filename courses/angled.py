"""Angled putt: cup off to the left of the tee."""

COURSE = {
    "name": "Angled",
    "objects": {
        "Ball":      {"min": [ 0.94, 0.0,   1.94], "max": [ 1.06, 0.12,  2.06]},
        "hole_cup":  {"min": [-1.12, -0.05, -1.12], "max": [-0.88, 0.0, -0.88]},
        "Green":     {"min": [-2.00, -0.10, -3.00], "max": [ 2.00, 0.0,  3.00]},
    },
}
