"""
storage.py
Payment-proof image storage (a plain directory on disk).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from errors import ValidationError
from models import is_manual_proof

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "webp", "gif", "pdf"}


class ProofStorage:
    def __init__(self, root: Path):
        self.root = Path(root)

    def save(self, user_id: str, filename: str, content: bytes, now: datetime | None = None) -> str:
        """
        Store an uploaded proof as `{user_id}-{epoch_ms}.{ext}` and return its reference.
        """
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(f"Unsupported proof file type: '{filename}'.")
        if not content:
            raise ValidationError("Proof file is empty.")

        now = now or datetime.now(timezone.utc)
        name = f"{user_id}-{int(now.timestamp() * 1000)}.{ext}"

        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / name).write_bytes(content)
        logger.info("stored payment proof %s (%d bytes)", name, len(content))
        return name

    def path_for(self, proof_url: str | None) -> Path | None:
        """Local file behind a stored proof reference; None for manual markers or missing files."""
        if not proof_url or is_manual_proof(proof_url):
            return None
        path = self.root / Path(proof_url).name
        return path if path.exists() else None
