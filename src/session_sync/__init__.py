"""Forward agent session tool activity to a task tracker."""

__version__ = "0.1.0"
