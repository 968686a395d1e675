"""Helpers shared by the unit tests."""

from unittest.mock import MagicMock

import requests

LINZ_HOST = "https://data.linz.govt.nz"


def make_response(status_code=200, text="", content=None, json_data=None, chunks=None):
    """Build a fake ``requests.Response``."""
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.text = text
    response.content = content if content is not None else text.encode("utf-8")
    response.json.return_value = json_data
    response.iter_content.return_value = iter(chunks or [])
    return response
