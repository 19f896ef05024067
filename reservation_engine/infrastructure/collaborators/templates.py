from pathlib import Path

from reservation_engine.infrastructure.collaborators.interfaces import TemplateSource

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parents[2] / "templates" / "email"


class FileTemplateSource(TemplateSource):
    """Loads ``<directory>/<name>.txt``."""

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory) if directory else DEFAULT_TEMPLATE_DIR

    def get_template(self, name: str) -> str:
        path = self.directory / f"{name}.txt"
        return path.read_text(encoding="utf-8")
