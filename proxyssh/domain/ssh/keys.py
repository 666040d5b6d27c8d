"""
Private key loading
"""
from pathlib import Path
from typing import Callable, Optional

import paramiko

from ...core.exceptions import KeyLoadError
from ...core.logging import get_logger

logger = get_logger(__name__)

# Tried in order; each raises SSHException on a key of another type
KEY_CLASSES = (
    paramiko.Ed25519Key,
    paramiko.ECDSAKey,
    paramiko.RSAKey,
)


def load_private_key(
    path: str,
    passphrase_callback: Optional[Callable[[str], str]] = None,
) -> paramiko.PKey:
    """
    Load a private key file, probing Ed25519, ECDSA and RSA formats.

    Args:
        path: Key file path (~ is expanded)
        passphrase_callback: Called with the path when the key is encrypted

    Returns:
        Decoded private key

    Raises:
        KeyLoadError: If the file cannot be read or is not a supported key
    """
    p = Path(path).expanduser()
    if not p.is_file():
        raise KeyLoadError(f"Private key file not found: {p}")

    passphrase: Optional[str] = None
    last_error: Optional[Exception] = None

    for key_class in KEY_CLASSES:
        try:
            key = key_class.from_private_key_file(str(p), password=passphrase)
        except paramiko.PasswordRequiredException:
            if passphrase_callback is None:
                raise KeyLoadError(f"Private key {p} is encrypted and no passphrase was given") from None
            passphrase = passphrase_callback(str(p))
            try:
                key = key_class.from_private_key_file(str(p), password=passphrase)
            except (paramiko.SSHException, ValueError) as e:
                last_error = e
                continue
        except (paramiko.SSHException, ValueError) as e:
            last_error = e
            continue
        except OSError as e:
            raise KeyLoadError(f"Cannot read private key {p}: {e}") from e

        logger.debug(f"Loaded {key.get_name()} key from {p}")
        return key

    raise KeyLoadError(f"Failed to load private key at {p}: {last_error}") from last_error
