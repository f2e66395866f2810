"""
File storage abstraction.

Provides a simple interface for reading template/texture documents and
storing rendered exports. Currently uses the local filesystem.
"""
from pathlib import Path
from typing import Optional
import uuid


class FileStorage:
    """
    Local file storage implementation.

    Files are organized as:
    - media/templates/  - Template SVG documents (svg_path is relative to media root)
    - media/textures/   - Texture SVG documents ({texture_id}.svg)
    - media/exports/    - Rendered PNG exports
    """

    def __init__(self, media_root: str = "media"):
        self.media_root = Path(media_root)
        self.media_root.mkdir(parents=True, exist_ok=True)

    def get_templates_dir(self) -> Path:
        """Get the template documents directory."""
        path = self.media_root / "templates"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_textures_dir(self) -> Path:
        """Get the texture documents directory."""
        path = self.media_root / "textures"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_exports_dir(self) -> Path:
        """Get the exports directory."""
        path = self.media_root / "exports"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def texture_path(self, texture_id: str) -> str:
        """Relative path of a texture document."""
        return f"textures/{texture_id}.svg"

    def read_text(self, relative_path: str) -> str:
        """
        Read a UTF-8 document stored under the media root.

        Raises:
            FileNotFoundError: if the file does not exist
        """
        path = self.get_absolute_path(relative_path.lstrip("/"))
        return path.read_text(encoding="utf-8")

    def save_export(self, data: bytes, export_id: Optional[str] = None, ext: str = ".png") -> str:
        """
        Save rendered export bytes.

        Returns:
            Relative path to the saved file
        """
        file_path = self.get_exports_dir() / f"{export_id or uuid.uuid4()}{ext}"
        with open(file_path, "wb") as f:
            f.write(data)
        return str(file_path.relative_to(self.media_root))

    def get_absolute_path(self, relative_path: str) -> Path:
        """Convert a relative path to absolute."""
        return self.media_root / relative_path
