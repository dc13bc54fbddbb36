"""
podchaos - randomized fault injection for Kubernetes pods.

Deletes pods, starts stress runners, stresses containers from the inside,
kills processes and watches victim health, on demand or on a cron schedule.
"""

__version__ = "0.1.0"
