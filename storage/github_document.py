"""
JSON document database stored in a GitHub repository.

The whole dataset lives in one file (``db.json``) that is read and written
through the GitHub contents API. Every write carries the blob SHA of the
revision it was based on, so GitHub rejects writes made from an outdated
copy instead of silently overwriting somebody else's changes.
"""

from __future__ import annotations

import base64
import copy
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar

import requests

from storage.base import (
    DocumentConflictError,
    DocumentWriteError,
    RecordNotFoundError,
)
from utils.time_utils import to_iso, utcnow

logger = logging.getLogger("darlingx_api")

T = TypeVar("T")

COLLECTIONS = ("quotes", "users", "oracle_responses")
ORACLE_CATEGORIES = ("quantum", "network", "metaphysical", "systems")

# GitHub answers 409 for a stale sha; 422 means a conflict only when it is about the sha
CONFLICT_STATUS = 409
VALIDATION_STATUS = 422


@dataclass
class DocumentSnapshot:
    """A private copy of the document plus the revision it was read at."""

    data: Dict[str, Any]
    sha: Optional[str]
    stale: bool = False


def empty_document(site_name: str = "DarlingX") -> Dict[str, Any]:
    now = to_iso(utcnow())
    return {
        "quotes": [],
        "users": [],
        "oracle_responses": [],
        "analytics": {
            "total_quotes": 0,
            "total_users": 0,
            "total_oracle_requests": 0,
            "popular_categories": {category: 0 for category in ORACLE_CATEGORIES},
            "last_updated": now,
        },
        "settings": {
            "site_name": site_name,
            "site_description": "",
            "maintenance_mode": False,
            "allow_registration": True,
            "require_approval": False,
            "max_quotes_per_user": 10,
            "rate_limit": {
                "quotes_per_hour": 5,
                "oracle_requests_per_hour": 10,
            },
        },
        "metadata": {
            "version": "1.0.0",
            "last_backup": now,
            "created_at": now,
            "updated_at": now,
        },
    }


def next_id(items: List[dict]) -> int:
    """1 for an empty collection, otherwise the largest id plus one."""
    return max((int(item.get("id") or 0) for item in items), default=0) + 1


def _is_conflict(response) -> bool:
    if response.status_code == CONFLICT_STATUS:
        return True
    return response.status_code == VALIDATION_STATUS and "sha" in (response.text or "").lower()


def _matches(item: dict, key: str, expected: Any) -> bool:
    if isinstance(expected, str):
        value = item.get(key)
        return bool(value) and expected.lower() in str(value).lower()
    return item.get(key) == expected


class GitHubDocumentStore:
    """
    Handle on one JSON document in a GitHub repository.

    Holds the cached document, the time it was fetched and its revision
    (blob SHA). Create one per process and pass it to the stores that need
    it. Without a token the store works on an in-memory document only.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        path: str = "db.json",
        branch: str = "main",
        token: Optional[str] = None,
        api_url: str = "https://api.github.com",
        cache_ttl: float = 300,
        write_retries: int = 3,
        timeout: float = 10.0,
        site_name: str = "DarlingX",
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.owner = owner
        self.repo = repo
        self.path = path
        self.branch = branch
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.cache_ttl = cache_ttl
        self.write_retries = max(1, write_retries)
        self.timeout = timeout
        self.site_name = site_name
        self.session = session or requests.Session()
        self.clock = clock

        self._cache: Optional[Dict[str, Any]] = None
        self._sha: Optional[str] = None
        self._fetched_at: Optional[float] = None
        self._local_revision = 0
        self._lock = threading.RLock()

        if not self.token:
            logger.warning("GitHub token is not configured, the document is kept in memory only")

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "GitHubDocumentStore":
        return cls(
            owner=settings.GITHUB_OWNER,
            repo=settings.GITHUB_REPO,
            path=settings.GITHUB_DB_PATH,
            branch=settings.GITHUB_BRANCH,
            token=settings.GITHUB_TOKEN,
            api_url=settings.GITHUB_API_URL,
            cache_ttl=settings.GITHUB_CACHE_TTL_SECONDS,
            write_retries=settings.GITHUB_WRITE_RETRIES,
            timeout=settings.GITHUB_TIMEOUT_SECONDS,
            site_name=settings.SITE_NAME,
            session=session,
        )

    @property
    def local_mode(self) -> bool:
        return not self.token

    @property
    def contents_url(self) -> str:
        return f"{self.api_url}/repos/{self.owner}/{self.repo}/contents/{self.path}"

    @property
    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"token {self.token}",
            "Accept": "application/vnd.github+json",
        }

    # ----- reading -----

    def _is_fresh(self) -> bool:
        return (
            self._cache is not None
            and self._fetched_at is not None
            and (self.clock() - self._fetched_at) < self.cache_ttl
        )

    def _snapshot(self, stale: bool = False) -> DocumentSnapshot:
        return DocumentSnapshot(data=copy.deepcopy(self._cache), sha=self._sha, stale=stale)

    def fetch(self, force: bool = False) -> DocumentSnapshot:
        """
        Return a copy of the document.

        Served from cache while it is younger than ``cache_ttl``. If the
        remote read fails the last good copy is returned (``stale=True``),
        or an empty document when nothing was ever loaded.
        """
        with self._lock:
            if self.local_mode:
                if self._cache is None:
                    self._cache = empty_document(self.site_name)
                    self._sha = self._local_sha()
                    self._fetched_at = self.clock()
                return self._snapshot()

            if not force and self._is_fresh():
                logger.debug("Serving GitHub document from cache")
                return self._snapshot()

            try:
                data, sha = self._read_remote()
            except (requests.RequestException, ValueError) as e:
                logger.error(f"Failed to load {self.path} from GitHub: {e}")
                if self._cache is not None:
                    logger.warning("Using the cached document after a failed load")
                    return self._snapshot(stale=True)
                return DocumentSnapshot(data=empty_document(self.site_name), sha=None, stale=True)

            self._cache = data
            self._sha = sha
            self._fetched_at = self.clock()
            logger.info(f"Loaded {self.path} from GitHub at revision {sha}")
            return self._snapshot()

    def _read_remote(self):
        response = self.session.get(
            self.contents_url,
            headers=self._headers,
            params={"ref": self.branch},
            timeout=self.timeout,
        )
        if response.status_code == 404:
            # nothing committed yet; the first save creates the file
            logger.warning(f"{self.path} does not exist in {self.owner}/{self.repo}, starting empty")
            return empty_document(self.site_name), None
        response.raise_for_status()

        payload = response.json()
        content = payload.get("content")
        if not content:
            raise ValueError(f"{self.path} has no inline content")
        data = json.loads(base64.b64decode(content).decode("utf-8"))
        for collection in COLLECTIONS:
            data.setdefault(collection, [])
        return data, payload.get("sha")

    # ----- writing -----

    def _local_sha(self) -> str:
        return f"local-{self._local_revision}"

    def _stamp(self, data: Dict[str, Any]) -> None:
        now = to_iso(utcnow())
        metadata = data.setdefault("metadata", {})
        metadata["updated_at"] = now
        metadata["last_backup"] = now

        analytics = data.setdefault("analytics", {})
        analytics["total_quotes"] = len(data.get("quotes", []))
        analytics["total_users"] = len(data.get("users", []))
        analytics["total_oracle_requests"] = len(data.get("oracle_responses", []))
        popular = analytics.setdefault("popular_categories", {})
        for category in ORACLE_CATEGORIES:
            popular[category] = sum(
                1 for entry in data.get("oracle_responses", []) if entry.get("category") == category
            )
        analytics["last_updated"] = now

    def save(self, snapshot: DocumentSnapshot, message: Optional[str] = None) -> DocumentSnapshot:
        """
        Write ``snapshot`` back as a new revision.

        Raises DocumentConflictError when the document changed since the
        snapshot was taken, DocumentWriteError for any other failure.
        """
        data = copy.deepcopy(snapshot.data)
        self._stamp(data)

        with self._lock:
            if self.local_mode:
                if snapshot.sha != self._sha:
                    raise DocumentConflictError(
                        f"{self.path} is at {self._sha}, write was based on {snapshot.sha}"
                    )
                self._local_revision += 1
                self._cache = data
                self._sha = self._local_sha()
                self._fetched_at = self.clock()
                return self._snapshot()

            payload = {
                "message": message or f"Update database - {to_iso(utcnow())}",
                "content": base64.b64encode(
                    json.dumps(data, ensure_ascii=False, indent=2).encode("utf-8")
                ).decode("ascii"),
                "branch": self.branch,
            }
            if snapshot.sha:
                payload["sha"] = snapshot.sha

            try:
                response = self.session.put(
                    self.contents_url, headers=self._headers, json=payload, timeout=self.timeout
                )
            except requests.RequestException as e:
                logger.error(f"Failed to save {self.path} to GitHub: {e}")
                raise DocumentWriteError(str(e)) from e

            if _is_conflict(response):
                logger.warning(
                    f"GitHub rejected write to {self.path} based on revision {snapshot.sha} "
                    f"({response.status_code})"
                )
                raise DocumentConflictError(
                    f"{self.path} changed since revision {snapshot.sha}"
                )
            if response.status_code >= 400:
                logger.error(f"GitHub write failed with {response.status_code}: {response.text[:300]}")
                raise DocumentWriteError(f"GitHub responded {response.status_code}")

            self._cache = data
            self._sha = response.json().get("content", {}).get("sha")
            self._fetched_at = self.clock()
            logger.info(f"Saved {self.path} to GitHub at revision {self._sha}")
            return self._snapshot()

    def _mutate(self, apply: Callable[[Dict[str, Any]], T], message: str) -> T:
        """
        Read-modify-write with the mutation re-applied to a fresh copy after
        a conflict, at most ``write_retries`` times.
        """
        with self._lock:
            snapshot = self.fetch()
            for attempt in range(1, self.write_retries + 1):
                result = apply(snapshot.data)
                try:
                    self.save(snapshot, message=message)
                    return result
                except DocumentConflictError:
                    if attempt == self.write_retries:
                        raise
                    logger.info(f"Retrying '{message}' on a fresh copy (attempt {attempt + 1})")
                    snapshot = self.fetch(force=True)
                    if snapshot.stale:
                        raise

    # ----- collections -----

    def add_to_collection(
        self,
        collection: str,
        item: Dict[str, Any],
        check: Optional[Callable[[List[Dict[str, Any]]], None]] = None,
    ) -> Dict[str, Any]:
        """
        Append ``item`` with the next id. ``check`` sees the collection of
        every copy the item is written into and may raise to abort the write.
        """
        def apply(data):
            items = data.setdefault(collection, [])
            if check:
                check(items)
            now = to_iso(utcnow())
            created = dict(item)
            created["id"] = next_id(items)
            created["createdAt"] = now
            created["updatedAt"] = now
            items.append(created)
            return created

        return self._mutate(apply, f"Add to {collection}")

    def update_in_collection(
        self,
        collection: str,
        item_id: int,
        changes: Dict[str, Any],
        check: Optional[Callable[[List[Dict[str, Any]]], None]] = None,
    ) -> Dict[str, Any]:
        def apply(data):
            items = data.get(collection) or []
            if check:
                check(items)
            for index, existing in enumerate(items):
                if existing.get("id") == item_id:
                    updated = {**existing, **changes, "updatedAt": to_iso(utcnow())}
                    updated["id"] = existing["id"]
                    items[index] = updated
                    return updated
            raise RecordNotFoundError(collection, item_id)

        return self._mutate(apply, f"Update {collection} #{item_id}")

    def remove_from_collection(self, collection: str, item_id: int) -> bool:
        def apply(data):
            items = data.get(collection) or []
            for index, existing in enumerate(items):
                if existing.get("id") == item_id:
                    del items[index]
                    return True
            raise RecordNotFoundError(collection, item_id)

        return self._mutate(apply, f"Remove {collection} #{item_id}")

    def find_in_collection(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Linear scan. String filters match case-insensitive substrings, other
        values must be equal, None values are ignored.
        """
        items = self.fetch().data.get(collection) or []
        for key, expected in (filters or {}).items():
            if expected is None:
                continue
            items = [item for item in items if _matches(item, key, expected)]
        return items

    def find_by_id(self, collection: str, item_id: int) -> Optional[Dict[str, Any]]:
        for item in self.fetch().data.get(collection) or []:
            if item.get("id") == item_id:
                return item
        return None

    # ----- settings / analytics -----

    def get_settings(self) -> Dict[str, Any]:
        return self.fetch().data.get("settings") or {}

    def update_settings(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        def apply(data):
            data["settings"] = {**(data.get("settings") or {}), **changes}
            return data["settings"]

        return self._mutate(apply, "Update settings")

    def get_analytics(self) -> Dict[str, Any]:
        return self.fetch().data.get("analytics") or {}

    def clear_cache(self) -> None:
        with self._lock:
            self._cache = None
            self._sha = None
            self._fetched_at = None
        logger.info("GitHub document cache cleared")

    def test_connection(self) -> bool:
        """True when the remote document could be read (always True in local mode)."""
        if self.local_mode:
            return True
        return not self.fetch(force=True).stale
