"""
External Identity Directory

Async client for the constituent directory plus the token refresh machinery.
"""
from .client import DirectoryClient, DirectoryResponse
from .tokens import (
    Credentials,
    TokenProvider,
    StaticTokenProvider,
    OAuthTokenProvider,
    CommandTokenProvider,
    RefreshPolicy,
    build_token_provider,
    decode_token_expiry,
)

__all__ = [
    "DirectoryClient",
    "DirectoryResponse",
    "Credentials",
    "TokenProvider",
    "StaticTokenProvider",
    "OAuthTokenProvider",
    "CommandTokenProvider",
    "RefreshPolicy",
    "build_token_provider",
    "decode_token_expiry",
]
