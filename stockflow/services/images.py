from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Iterable

from stockflow.services.exceptions import (
    ImageStoreError,
    InvalidArgument,
    NotFound,
    PathNotAllowed,
)

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")
DEFAULT_MAX_SIZE = 5 * 1024 * 1024


class ImageStore:
    """
    Stockage local des images produit.

    Les fichiers sont écrits sous `root` avec un nom <uuid>.<ext> et exposés
    publiquement sous `url_prefix`. La suppression est confinée à `root`.
    """

    def __init__(
        self,
        root: str | Path,
        *,
        url_prefix: str = "/uploads",
        max_size: int = DEFAULT_MAX_SIZE,
        allowed_extensions: Iterable[str] = DEFAULT_EXTENSIONS,
    ):
        self.root = Path(root).resolve()
        self.url_prefix = "/" + url_prefix.strip("/")
        self.max_size = max_size
        self.allowed_extensions = {ext.lower().lstrip(".") for ext in allowed_extensions}

    def _extension(self, filename: str | None) -> str:
        if not filename or "." not in filename:
            raise InvalidArgument("File type not allowed")
        ext = filename.rsplit(".", 1)[-1].lower()
        if ext not in self.allowed_extensions:
            raise InvalidArgument("File type not allowed")
        return ext

    def save(self, filename: str | None, content: bytes) -> str:
        """Valide puis écrit l'image, renvoie son chemin public (/uploads/<nom>)."""
        if not content:
            raise InvalidArgument("No file provided")
        if len(content) > self.max_size:
            raise InvalidArgument(f"File too large (max {self.max_size // (1024 * 1024)}MB)")
        ext = self._extension(filename)

        name = f"{uuid.uuid4()}.{ext}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / name).write_bytes(content)
        except OSError as exc:
            logger.exception("Écriture image impossible: %s", name)
            raise ImageStoreError("Could not store the file") from exc

        logger.info("Image enregistrée: %s (%s octets)", name, len(content))
        return f"{self.url_prefix}/{name}"

    def resolve(self, public_path: str) -> Path:
        """Chemin public -> fichier sous root ; refuse tout ce qui sort de root."""
        if not public_path or not public_path.startswith(self.url_prefix + "/"):
            raise InvalidArgument("Invalid path")

        relative = public_path[len(self.url_prefix) + 1:]
        target = (self.root / relative).resolve()
        if target == self.root or not target.is_relative_to(self.root):
            logger.warning("Chemin hors du répertoire d'upload refusé: %s", public_path)
            raise PathNotAllowed("Path not allowed")
        return target

    def owns(self, public_path: str | None) -> bool:
        return bool(public_path) and public_path.startswith(self.url_prefix + "/")

    def delete(self, public_path: str) -> None:
        target = self.resolve(public_path)
        if not target.is_file():
            raise NotFound("File not found")
        try:
            target.unlink()
        except OSError as exc:
            logger.exception("Suppression image impossible: %s", target)
            raise ImageStoreError("Could not delete the file") from exc
        logger.info("Image supprimée: %s", public_path)
