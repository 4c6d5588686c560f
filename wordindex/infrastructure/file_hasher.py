import hashlib
from pathlib import Path
from typing import Optional


def compute_file_hash(file_path: str) -> str:
    """
    SHA-256 of a file's contents.
    Lets the composition roots skip re-indexing a document that has not changed.
    """
    sha256 = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)
    return sha256.hexdigest()


def document_fingerprint(file_path: str, scale: float, tolerance: Optional[float] = None) -> dict[str, str]:
    """
    Metadata saved next to the word set. Scale and tolerance are part of it:
    the same file indexed with other settings yields other rows and boxes.
    """
    return {
        "document": Path(file_path).name,
        "sha256": compute_file_hash(file_path),
        "scale": f"{scale:g}",
        "tolerance": "auto" if tolerance is None else f"{tolerance:g}",
    }


def is_up_to_date(stored: dict[str, str], current: dict[str, str]) -> bool:
    return bool(stored) and all(stored.get(key) == value for key, value in current.items())
