"""Core domain package for the bridge.

Core contains identity, correlation and relay-loop logic without any
mautrix or discord.py code, keeping the bridging rules portable.
"""
