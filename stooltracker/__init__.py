"""Bowel-movement tracking with simple health-pattern analytics.

The event store and the analytics engine are pure over their inputs;
storage, reminders and the terminal front-end are thin glue around them.
"""

__version__ = "0.1.0"
