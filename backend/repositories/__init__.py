from .templates import SqlTemplateCatalog, TemplatesRepository
from . import models

__all__ = ["TemplatesRepository", "SqlTemplateCatalog", "models"]
