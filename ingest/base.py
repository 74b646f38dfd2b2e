"""Base ingestor class."""
from typing import Any, Optional

import requests

from common.logger import get_logger
from config.settings import HTTP_TIMEOUT


class BaseIngestor:
    base_url: str = ""

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = HTTP_TIMEOUT):
        self.logger = get_logger(self.__class__.__name__)
        self.session = session or requests.Session()
        self.timeout = timeout

    def default_headers(self) -> dict[str, str]:
        return {"accept": "application/json"}

    def get_json(self, path: str, params: Optional[dict] = None,
                 headers: Optional[dict] = None) -> Any:
        """GET ``base_url + path`` and decode JSON. HTTP errors raise."""
        resp = self.session.get(
            self.base_url + path,
            params=params,
            headers={**self.default_headers(), **(headers or {})},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()
