"""
skillmgr - Skill manager service.

Discovers, installs, upgrades, starts and supervises skill worker
processes, and accepts install requests over the message bus.
"""

__version__ = "0.3.0"
