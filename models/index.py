import importlib
import logging
from pathlib import Path

from config.database import engine, Base

logger = logging.getLogger(__name__)

API_DIR = Path(__file__).parent.parent / "api"

# Dictionary of loaded models keyed by table name
models = {}


def import_all_models() -> dict:
    """
    Import every api/**/*_model.py under its package name so the metadata
    and string-based relationships are complete.
    """
    for item in sorted(API_DIR.rglob("*_model.py")):
        dotted = "api." + ".".join(item.relative_to(API_DIR).with_suffix("").parts)
        module = importlib.import_module(dotted)
        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if isinstance(attr, type) and issubclass(attr, Base) and hasattr(attr, "__tablename__"):
                models[attr.__tablename__] = attr
    logger.debug("Registered models: %s", sorted(models))
    return models


def init_db():
    import_all_models()
    Base.metadata.create_all(bind=engine)


__all__ = ["import_all_models", "init_db", "models"]
