"""On-device medication reminders: plan store, local notification scheduling
and the once-per-day rollover of remaining treatment days.
"""

__version__ = "0.1.0"
