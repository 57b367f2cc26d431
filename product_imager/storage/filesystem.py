from pathlib import Path


class ExportStorage:
    """Simple storage backend writing export documents to the host filesystem."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def resolve_path(self, filename: str) -> Path:
        """Return the location of an export document."""
        path = Path(filename)
        if path.is_absolute():
            path.parent.mkdir(parents=True, exist_ok=True)
            return path
        return self.root / path.name

    def save(self, filename: str, document: str) -> Path:
        """Write `document` and return the path it was stored at."""
        path = self.resolve_path(filename)
        path.write_text(document, encoding="utf-8")
        return path
