from .filesystem import ExportStorage  # noqa: F401
