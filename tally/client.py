"""HTTP client for a running tally server."""

import json
import logging
import urllib.error
import urllib.parse
import urllib.request

import tally.config as config
from tally.intervals import Interval

log = logging.getLogger(__name__)


class ClientError(Exception):
    """The server could not be reached or rejected the request."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class TallyClient:
    def __init__(self, host: str | None = None, port: int | None = None,
                 timeout: float = config.CLIENT_TIMEOUT):
        self.host = host or config.HOST
        self.port = config.PORT if port is None else port
        self.timeout = timeout

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def _request(self, method: str, path: str, params: dict | None = None,
                 body: dict | None = None) -> dict:
        url = self.base_url + path
        if params:
            url += "?" + urllib.parse.urlencode(params)
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(
            url, data=data, method=method,
            headers={"Content-Type": "application/json"},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as exc:
            try:
                message = json.loads(exc.read()).get("error", exc.reason)
            except (ValueError, AttributeError):
                message = exc.reason
            raise ClientError(f"{method} {path} failed: {message}", exc.code) from None
        except (urllib.error.URLError, OSError) as exc:
            raise ClientError(f"could not reach tally server at {self.base_url}: {exc}") from None

    def tick(self, label: str = "") -> int:
        return self._request("POST", "/tick", body={"label": label})["timestamp"]

    def intervals(self, start: int | None = None, end: int | None = None,
                  label: str = "") -> list[Interval]:
        params = {}
        if start is not None:
            params["start"] = start
        if end is not None:
            params["end"] = end
        if label:
            params["label"] = label
        resp = self._request("GET", "/intervals", params=params)
        return [Interval.from_dict(d) for d in resp.get("Intervals") or []]

    def today(self) -> dict:
        return self._request("GET", "/today")

    def status(self) -> dict:
        return self._request("GET", "/status")

    def clear(self) -> int:
        return self._request("POST", "/clear", body={"confirm": "yes"})["removed"]
