"""GitHub contents API ledger store.

The ledger is a JSON file in a repository branch. The blob `sha` returned by
the contents API is the version token: an update must quote the sha it read,
and GitHub answers 409 when the file moved on since. Creating omits the sha,
which GitHub rejects with 422 when the file already exists, so creation never
overwrites a ledger another caller initialized first.
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from codeledger.config import GitHubStoreConfig
from codeledger.logic.errors import StoreTransportError, VersionConflict
from codeledger.models.ledger import Ledger, VersionedLedger, parse_ledger_document, serialize_ledger

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"
USER_AGENT = "codeledger"
INIT_COMMIT_MESSAGE = "init code ledger"


def _headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "Accept": "application/vnd.github+json",
        "User-Agent": USER_AGENT,
    }


def _commit_message(ledger: Ledger) -> str:
    if not ledger.assignments:
        return INIT_COMMIT_MESSAGE
    last = ledger.assignments[-1]
    return f"assign {last.code} to {last.label}"


class GitHubLedgerStore:
    name = "github"

    def __init__(self, client: httpx.Client, *, owner: str, repo: str, branch: str, path: str) -> None:
        self._client = client
        self._branch = branch
        self._url = f"/repos/{quote(owner, safe='')}/{quote(repo, safe='')}/contents/{quote(path, safe='/')}"

    @classmethod
    def from_config(cls, config: GitHubStoreConfig, transport: httpx.BaseTransport | None = None) -> "GitHubLedgerStore":
        client = httpx.Client(
            base_url=config.api_url,
            headers=_headers(str(config.token)),
            timeout=config.timeout_seconds,
            transport=transport,
        )
        return cls(client, owner=str(config.owner), repo=str(config.repo), branch=config.branch, path=config.path)

    def close(self) -> None:
        self._client.close()

    # ----------------------
    # Contract
    # ----------------------

    def read(self) -> Optional[VersionedLedger]:
        response = self._request("GET", params={"ref": self._branch})
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise self._transport_error("GET", response)
        payload = self._json(response)
        sha = payload.get("sha")
        if not isinstance(sha, str) or not sha or payload.get("type", "file") != "file":
            raise StoreTransportError("GitHub contents response is not a file with a sha")
        raw = self._decode_content(payload)
        return VersionedLedger(ledger=parse_ledger_document(raw), token=sha)

    def create(self, initial: Ledger) -> str:
        return self._put(initial, sha=None)

    def write_if_match(self, ledger: Ledger, token: str) -> str:
        return self._put(ledger, sha=token)

    # ----------------------
    # Transport helpers
    # ----------------------

    def _request(self, method: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, self._url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("store.github.%s_failed error=%s", method.lower(), e)
            raise StoreTransportError(f"GitHub {method} failed: {e}") from e

    def _put(self, ledger: Ledger, sha: Optional[str]) -> str:
        body: dict[str, Any] = {
            "message": _commit_message(ledger),
            "content": base64.b64encode(serialize_ledger(ledger).encode("utf-8")).decode("ascii"),
            "branch": self._branch,
        }
        if sha:
            body["sha"] = sha
        response = self._request("PUT", json=body)
        logger.info("store.github.put status=%s create=%s", response.status_code, sha is None)
        if response.status_code == 409 or (sha is None and response.status_code == 422):
            raise VersionConflict(f"GitHub PUT rejected with {response.status_code}", token=sha)
        if not response.is_success:
            raise self._transport_error("PUT", response)
        payload = self._json(response)
        content = payload.get("content")
        new_sha = content.get("sha") if isinstance(content, dict) else None
        if not isinstance(new_sha, str) or not new_sha:
            # The commit landed; only the follow-up token is unknown
            logger.warning("store.github.put_missing_sha status=%s", response.status_code)
            return ""
        return new_sha

    def _decode_content(self, payload: dict) -> bytes:
        encoding = payload.get("encoding", "base64")
        content = payload.get("content")
        if encoding == "none" or (isinstance(content, str) and not content and payload.get("size")):
            # Files over 1 MB come back without inline content
            return self._fetch_raw()
        if encoding != "base64" or not isinstance(content, str):
            raise StoreTransportError(f"GitHub contents response has unsupported encoding {encoding!r}")
        try:
            return base64.b64decode(content.replace("\n", ""), validate=True)
        except (binascii.Error, ValueError) as e:
            raise StoreTransportError(f"GitHub contents response is not valid base64: {e}") from e

    def _fetch_raw(self) -> bytes:
        response = self._request(
            "GET",
            params={"ref": self._branch},
            headers={"Accept": "application/vnd.github.raw+json"},
        )
        if not response.is_success:
            raise self._transport_error("GET", response)
        return response.content

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            payload = response.json()
        except ValueError as e:
            raise StoreTransportError(f"GitHub response is not JSON (status {response.status_code})") from e
        if not isinstance(payload, dict):
            raise StoreTransportError("GitHub response is not a JSON object")
        return payload

    @staticmethod
    def _transport_error(method: str, response: httpx.Response) -> StoreTransportError:
        text = response.text[:200] if response.text else ""
        logger.error("store.github.%s_status status=%s body=%s", method.lower(), response.status_code, text)
        return StoreTransportError(f"GitHub {method} failed {response.status_code}: {text}", status=response.status_code)


__all__ = ["GitHubLedgerStore", "GITHUB_API_VERSION", "INIT_COMMIT_MESSAGE"]
