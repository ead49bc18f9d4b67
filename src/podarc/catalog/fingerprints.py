"""Content fingerprints used as cache-invalidation keys."""

import hashlib

SERIES_FINGERPRINT_VERSION = "srfp:v1"
EPISODE_FINGERPRINT_LENGTH = 16


def sha256_hex(payload: str) -> str:
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def episode_fingerprint(title: str, description: str | None) -> str:
    """Stable hash of an episode's visible content (title + description)."""
    return sha256_hex(f"{title}||{description or ''}")[:EPISODE_FINGERPRINT_LENGTH]


def series_fingerprint(series_id: str, member_fingerprints: list[str]) -> str:
    """Hash of a series id and its ordered member fingerprints."""
    payload = f"{SERIES_FINGERPRINT_VERSION}\n{series_id}\n" + "\n".join(member_fingerprints)
    return sha256_hex(payload)
