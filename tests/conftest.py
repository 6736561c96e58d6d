import sys
from concurrent.futures import Executor, Future
from pathlib import Path

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from dreamdecor.catalog import FurnitureCatalog  # noqa: E402


class InlineExecutor(Executor):
    """Runs submitted work immediately on the calling thread."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


class ManualExecutor(Executor):
    """Holds submitted work until the test calls run_all()."""

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        pending, self.pending = self.pending, []
        for future, fn, args, kwargs in pending:
            if not future.set_running_or_notify_cancel():
                continue
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as exc:
                future.set_exception(exc)


SMALL_CATALOG = [
    {"id": "none", "name": "Eraser", "placement": "eraser", "cost": 0, "style": 0},
    {"id": "sofa", "name": "Sofa", "placement": "furniture", "cost": 200, "style": 30, "comfort": 5},
    {"id": "piano", "name": "Piano", "placement": "furniture", "cost": 500, "style": 40, "comfort": 1},
    {"id": "shelf", "name": "Shelf", "placement": "surface", "cost": 100, "style": 10, "comfort": 0},
    {"id": "vase", "name": "Vase", "placement": "stackable", "cost": 50, "style": 5, "comfort": 1},
    {"id": "seating", "name": "Modern Sofa", "placement": "furniture", "cost": 150, "style": 15, "comfort": 10},
]


@pytest.fixture()
def inline_executor():
    return InlineExecutor()


@pytest.fixture()
def manual_executor():
    return ManualExecutor()


@pytest.fixture()
def small_catalog():
    return FurnitureCatalog.from_records(SMALL_CATALOG)


@pytest.fixture()
def catalog():
    return FurnitureCatalog.from_yaml()
