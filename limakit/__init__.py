"""Building blocks for Linux virtual machine host and guest agents.

TCP table parsing, the guest agent HTTP API over UNIX sockets, host agent
events, SSH port forwarding, SSH option rendering, instance argument
handling, cloud-init argument checks and a download cache.
"""

__version__ = "0.1.0"