"""
Proxy domain module
"""
from .models import ProxyScheme, ProxyEndpoint, Destination
from .dialer import ProxyDialer, dial

__all__ = ["ProxyScheme", "ProxyEndpoint", "Destination", "ProxyDialer", "dial"]
