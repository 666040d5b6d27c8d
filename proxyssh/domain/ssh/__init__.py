"""
SSH domain module
"""
from .models import PublicKeyAuth, InteractiveAuth, AuthMethod, SessionConfig
from .connection import SSHConnection
from .auth import authenticate
from .keys import load_private_key
from .challenge import PasswordOnlyAnswerer, PromptAllAnswerer, create_answerer
from .host_keys import AcceptAnyHostKey, KnownHostsPolicy, AskHostKeyPolicy, create_host_key_policy

__all__ = [
    "PublicKeyAuth",
    "InteractiveAuth",
    "AuthMethod",
    "SessionConfig",
    "SSHConnection",
    "authenticate",
    "load_private_key",
    "PasswordOnlyAnswerer",
    "PromptAllAnswerer",
    "create_answerer",
    "AcceptAnyHostKey",
    "KnownHostsPolicy",
    "AskHostKeyPolicy",
    "create_host_key_policy",
]
