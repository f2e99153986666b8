from __future__ import annotations
import importlib
import pkgutil
from pathlib import Path
from typing import Dict, List, Type

from ..sources.base import RecordSource
from .models import TransactionRecord
from .transactions import InMemoryTransactionStore


def _discover_package_classes(pkg, base_cls) -> Dict[str, Type]:
    discovered: Dict[str, Type] = {}
    for m in pkgutil.iter_modules(pkg.__path__, pkg.__name__ + "."):
        module = importlib.import_module(m.name)
        for attr_name in dir(module):
            obj = getattr(module, attr_name)
            if isinstance(obj, type) and issubclass(obj, base_cls) and obj is not base_cls:
                name = getattr(obj, "NAME", obj.__name__).lower()
                discovered[name] = obj
    return discovered


def discover_record_sources() -> Dict[str, RecordSource]:
    from .. import sources as sources_pkg  # lazy import
    classes = _discover_package_classes(sources_pkg, RecordSource)
    return {name: cls() for name, cls in classes.items()}


def choose_source(sources: Dict[str, RecordSource], path: Path) -> RecordSource:
    ext = path.suffix.lower().lstrip(".")
    for source in sources.values():
        if ext in source.SUPPORTED_EXTENSIONS:
            return source
    # fallback to json lines
    return sources.get("jsonl", next(iter(sources.values())))


def load_records(path: Path) -> List[TransactionRecord]:
    source = choose_source(discover_record_sources(), path)
    return list(source.load(path))


def load_transaction_store(paths: List[Path]) -> InMemoryTransactionStore:
    store = InMemoryTransactionStore()
    for path in paths:
        store.extend(load_records(path))
    return store
