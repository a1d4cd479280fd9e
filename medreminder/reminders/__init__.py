"""Reminder module (notification scheduler, daily rollover, lifecycle wiring).

Everything here runs on the host application's asyncio event loop. The
scheduler talks to the OS notification layer through a NotificationBackend;
the rollover processor is the only writer of plan durations.
"""
