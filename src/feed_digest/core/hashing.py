"""
Hash helpers for item identity.
"""

import hashlib


def hash_identifier(text: str) -> str:
    """Compute the SHA-256 hex digest of a string.

    Args:
        text: Input text, encoded as UTF-8

    Returns:
        64-character lowercase hex digest
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def seen_key_material(source_id: str, item_id: str) -> str:
    """Text hashed to fingerprint an item within its source."""
    return f"{source_id}:{item_id}"


def seen_hash(source_id: str, item_id: str) -> str:
    """Fingerprint of an item scoped to its source."""
    return hash_identifier(seen_key_material(source_id, item_id))
