import os

import pytest

from minilib.library import Library, MemoryLibrary


@pytest.fixture
def db_file(tmp_path, request):
    # Unique database file for each test
    return str(tmp_path / f"test_{request.node.name}.db")


@pytest.fixture
def lib(db_file):
    lib = Library(db_file=db_file)
    yield lib
    lib.close()
    if os.path.exists(db_file):
        os.remove(db_file)


@pytest.fixture(params=["sqlite", "memory"])
def any_lib(request, tmp_path):
    """Each catalog store implementation, so shared behaviour is tested on both."""
    if request.param == "memory":
        yield MemoryLibrary()
    else:
        lib = Library(db_file=str(tmp_path / "catalog.db"))
        yield lib
        lib.close()
