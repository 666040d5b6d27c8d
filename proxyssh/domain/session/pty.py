"""
Pseudo-terminal request with terminal modes
"""
import struct
from typing import Mapping

import paramiko
from paramiko.common import cMSG_CHANNEL_REQUEST
from paramiko.message import Message

from ...core.constants import TTY_OP_END
from ..ssh.models import SessionConfig


def encode_terminal_modes(modes: Mapping[int, int]) -> bytes:
    """
    Encode terminal modes as in RFC 4254 section 8.

    Each mode is an opcode byte followed by a uint32 value; the list ends
    with TTY_OP_END.
    """
    encoded = b"".join(struct.pack(">BI", opcode, value) for opcode, value in modes.items())
    return encoded + bytes([TTY_OP_END])


def request_pty(channel: paramiko.Channel, config: SessionConfig) -> None:
    """
    Send a pty-req carrying config's terminal modes and wait for the reply.

    paramiko's Channel.get_pty() always sends an empty mode list, so the
    request is built here the same way, with the modes filled in.

    Raises:
        paramiko.SSHException: If the channel is not open or the server refuses
    """
    if channel.closed or channel.eof_received or channel.eof_sent or not channel.active:
        raise paramiko.SSHException("Channel is not open")

    m = Message()
    m.add_byte(cMSG_CHANNEL_REQUEST)
    m.add_int(channel.remote_chanid)
    m.add_string("pty-req")
    m.add_boolean(True)
    m.add_string(config.term)
    m.add_int(config.width)
    m.add_int(config.height)
    m.add_int(0)  # width in pixels
    m.add_int(0)  # height in pixels
    m.add_string(encode_terminal_modes(config.modes))
    # Same private calls as Channel.get_pty in paramiko 3.4 through 4.x
    channel._event_pending()
    channel.transport._send_user_message(m)
    channel._wait_for_event()
