"""
Project constants definitions
"""

# ============================================================
# Proxy
# ============================================================

PROXY_SCHEME_DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
    "socks4": 1080,
    "socks4a": 1080,
    "socks5": 1080,
    "socks5h": 1080,
}

# Upper bound for an HTTP CONNECT response head
MAX_HTTP_RESPONSE_HEAD = 64 * 1024

# ============================================================
# SSH
# ============================================================

DEFAULT_HOST_KEY_POLICY = "accept-any"
DEFAULT_KNOWN_HOSTS_PATH = "~/.ssh/known_hosts"
DEFAULT_CHALLENGE_ANSWERER = "password-only"
DEFAULT_KEEPALIVE = 0

# ============================================================
# Session
# ============================================================

DEFAULT_TERM = "dumb"
DEFAULT_WIDTH = 80
DEFAULT_HEIGHT = 40

# Terminal mode opcodes (RFC 4254 section 8, IUTF8 from RFC 8160)
TTY_OP_END = 0
TERMINAL_MODE_OPCODES = {
    "VINTR": 1,
    "VQUIT": 2,
    "VERASE": 3,
    "VKILL": 4,
    "VEOF": 5,
    "VEOL": 6,
    "VEOL2": 7,
    "VSTART": 8,
    "VSTOP": 9,
    "VSUSP": 10,
    "VDSUSP": 11,
    "VREPRINT": 12,
    "VWERASE": 13,
    "VLNEXT": 14,
    "VFLUSH": 15,
    "VSWTCH": 16,
    "VSTATUS": 17,
    "VDISCARD": 18,
    "IGNPAR": 30,
    "PARMRK": 31,
    "INPCK": 32,
    "ISTRIP": 33,
    "INLCR": 34,
    "IGNCR": 35,
    "ICRNL": 36,
    "IUCLC": 37,
    "IXON": 38,
    "IXANY": 39,
    "IXOFF": 40,
    "IMAXBEL": 41,
    "IUTF8": 42,
    "ISIG": 50,
    "ICANON": 51,
    "XCASE": 52,
    "ECHO": 53,
    "ECHOE": 54,
    "ECHOK": 55,
    "ECHONL": 56,
    "NOFLSH": 57,
    "TOSTOP": 58,
    "IEXTEN": 59,
    "ECHOCTL": 60,
    "ECHOKE": 61,
    "PENDIN": 62,
    "OPOST": 70,
    "OLCUC": 71,
    "ONLCR": 72,
    "OCRNL": 73,
    "ONOCR": 74,
    "ONLRET": 75,
    "CS7": 90,
    "CS8": 91,
    "PARENB": 92,
    "PARODD": 93,
    "TTY_OP_ISPEED": 128,
    "TTY_OP_OSPEED": 129,
}

DEFAULT_TERMINAL_MODES = {
    "ECHO": 0,               # disable echoing
    "IGNCR": 1,              # ignore CR on input
    "TTY_OP_ISPEED": 14400,  # input speed = 14.4kbaud
    "TTY_OP_OSPEED": 14400,  # output speed = 14.4kbaud
}

# ============================================================
# Relay
# ============================================================

RELAY_BUFFER_SIZE = 32 * 1024
RELAY_POLL_INTERVAL = 0.1
RELAY_JOIN_TIMEOUT = 2.0

# ============================================================
# Exit codes
# ============================================================

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130
