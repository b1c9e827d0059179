"""
Tribridge mirrors the channels of an IRC network into a
Discord guild, and relays messages between each pair of
mirrored channels. Built on trio.
"""

__version__ = "0.1.0"
