"""Notion API client."""

import json
from typing import Any

import requests
from loguru import logger

from notion_retrieval.config import (
    API_BASE_URL,
    API_TIMEOUT_SECONDS,
    API_VERSION,
    resolve_api_token,
)
from notion_retrieval.errors import ApiError, NotConfiguredError


class NotionApi:
    """Thin wrapper around the Notion REST API.

    The client can be constructed without a token; `configured` is then False
    and every call raises NotConfiguredError before touching the network.
    """

    def __init__(self, *, token: str | None = None, base_url: str = API_BASE_URL) -> None:
        self.api_token = token if token is not None else resolve_api_token()
        self.base_url = base_url.rstrip("/")
        self.sess = requests.Session()
        if self.api_token:
            self.sess.headers.update(
                {
                    "Authorization": f"Bearer {self.api_token}",
                    "Notion-Version": API_VERSION,
                    "Content-Type": "application/json",
                }
            )
        logger.debug("API ready: base_url {!r}, configured {!r}", self.base_url, self.configured)

    @property
    def configured(self) -> bool:
        return bool(self.api_token)

    def call(self, path: str, args: dict[str, Any], *, method: str = "POST") -> dict[str, Any]:
        """Invoke a Notion endpoint, return json.

        GET requests send `args` as query parameters, everything else as a JSON body.
        """
        if not self.configured:
            msg = "Notion API is not configured (set NOTION_API_KEY)"
            raise NotConfiguredError(msg)

        logger.debug("Making request: {} {!r} {}", method, path, repr(args)[:48])
        url = f"{self.base_url}/{path}"
        try:
            if method == "GET":
                r = self.sess.get(url, params=args or None, timeout=API_TIMEOUT_SECONDS)
            else:
                r = self.sess.request(
                    method, url, data=json.dumps(args), timeout=API_TIMEOUT_SECONDS
                )
        except requests.RequestException as e:
            msg = f"API request failed: ({method} {path!r}) -> {e}"
            raise ApiError(msg) from e

        if r.status_code >= 400:
            code: str | None = None
            detail = r.text[:200]
            try:
                body = r.json()
                code = body.get("code")
                detail = body.get("message", detail)
            except ValueError:
                pass
            msg = f"API call failed: ({method} {path!r}) -> ({r.status_code}, {code!r}, {detail!r})"
            raise ApiError(msg, status=r.status_code, code=code)

        rv: dict[str, Any] = r.json()
        return rv
