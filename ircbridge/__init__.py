"""
irc-bridge relays chat activity between several IRC networks,
annotating every relayed line with its network of origin.
"""

__version__ = "0.1.0"
