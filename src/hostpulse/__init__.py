"""
hostpulse - lightweight host monitoring agent.

Samples local system metrics on a fixed cadence and pushes them to a
remote collector endpoint over HTTP.
"""

__version__ = "1.0.0"
