"""Tables and plots for inspecting a calibrated smile."""

from .smile import calibration_frame, grid_frame, payoff_frame

__all__ = ["calibration_frame", "grid_frame", "payoff_frame"]
