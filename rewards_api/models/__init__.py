# rewards_api/models/__init__.py
import importlib
import pkgutil


def load_all():
    """Import every model module so db.metadata knows all reward and directory tables."""
    for mod in pkgutil.iter_modules(__path__):
        importlib.import_module(f"{__name__}.{mod.name}")
