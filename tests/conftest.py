import json
from pathlib import Path

import pytest

from comfygraph.schema import parse_schema_response

DATA = Path(__file__).parent / "data"

@pytest.fixture
def data_dir() -> Path:
    return DATA

@pytest.fixture
def object_info_raw() -> dict:
    return json.loads((DATA / "object_info.json").read_text())

@pytest.fixture
def schemas(object_info_raw):
    return parse_schema_response(object_info_raw)
