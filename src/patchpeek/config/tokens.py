from __future__ import annotations

import hashlib
from typing import Optional

GITHUB_TOKEN_PREFIXES: tuple[str, ...] = ("ghp_", "github_pat_", "gho_", "ghu_", "ghs_", "ghr_")


def hash_token_for_namespace(token: str, prefix_length: int = 12) -> str:
    """Hash a token (e.g., GitHub token) to create a safe namespace identifier.

    Uses SHA3-256 and returns the first N characters of the hex digest.
    This keeps raw tokens out of logs and in-memory keys while maintaining uniqueness.

    Args:
        token: The token to hash (e.g., GitHub personal access token)
        prefix_length: Number of hex characters to use from the hash (default: 12)

    Returns:
        Hashed prefix suitable for use as a namespace identifier
    """
    hash_obj = hashlib.sha3_256(token.encode("utf-8"))
    return hash_obj.hexdigest()[:prefix_length]


def token_namespace(token: Optional[str]) -> str:
    """Namespace for rate-limit bookkeeping; anonymous requests share one bucket."""
    if not token:
        return "anonymous"
    return hash_token_for_namespace(token)


def looks_like_github_token(token: str) -> bool:
    return token.startswith(GITHUB_TOKEN_PREFIXES)


def mask_token(token: Optional[str]) -> str:
    if not token:
        return "-"
    return f"{token[:8]}..." if len(token) > 8 else "***"
