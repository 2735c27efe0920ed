"""Text-command protocol shared by the host and its replicas."""

from dotsboxes.protocol.commands import PROTOCOL_VERSION, Command, parse_line

__all__ = ["PROTOCOL_VERSION", "Command", "parse_line"]
