"""Event Globe: time-keyed event markers on a day/night shaded globe."""

__version__ = "0.1.0"
