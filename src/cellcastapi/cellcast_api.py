from urllib.parse import urljoin

from cellcastapi import __version__
from cellcastapi.config import DEFAULT_BASE_URL


class CellcastAPI:
    def __init__(self, base_url: str = DEFAULT_BASE_URL) -> None:
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"cellcastapi/{__version__}",
        }

    def update_headers(self, headers: dict[str, str]) -> None:
        self.headers.update(headers)

    def url_for(self, path: str) -> str:
        return urljoin(self.base_url, path.lstrip("/"))
