"""
Server Config
-------------

Interactive, menu-driven setup tool for Debian/Ubuntu servers: system
updates, hostname, users with SSH keys, UFW firewall, swap, SSH and a
category-driven package installer.
"""

APP_NAME: str = "Server Config"
VERSION: str = "1.0.0"

__version__ = VERSION
