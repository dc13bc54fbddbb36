#!/usr/bin/env python3
"""
Main entry point for running the podchaos CLI as a module.

Usage:
    python3 -m podchaos run --kind pod-delete --namespace default --count 2
    python3 -m podchaos cron --schedule "*/5 * * * *" --kind cpu-stress --probability 0.3
    python3 -m podchaos seed --namespace default --count 3
    python3 -m podchaos cleanup --namespace default
    python3 -m podchaos info
"""

from .cli import main

if __name__ == "__main__":
    main()
