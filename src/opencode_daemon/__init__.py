"""
opencode-daemon-manager: start, stop and inspect a detached `opencode serve` process.
"""

__version__ = "0.1.0"
