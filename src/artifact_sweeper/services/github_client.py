"""Blocking GitHub REST client covering the endpoints the sweeper needs."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import requests
from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..config import Settings, SweepConfig
from ..errors import GitHubAPIError, RateLimitError, TransientAPIError
from ..models import Artifact, WorkflowRun
from ..utils.logging import get_logger

API_VERSION = "2022-11-28"
SECONDARY_LIMIT_DELAY = 60.0

PageItems = List[Dict[str, Any]]

_BACKOFF = wait_exponential(multiplier=1, min=2, max=10)


class GitHubClient:
    """Wrapper around a ``requests`` session that standardises pagination and retries.

    Rate-limit responses (primary and secondary) are retried after the delay the
    server asks for; 5xx and connection failures back off exponentially. Retries
    are capped at ``max_attempts`` and disabled entirely when
    ``retries_enabled`` is false.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        token: str = "",
        api_url: str = "https://api.github.com",
        retries_enabled: bool = True,
        max_attempts: int = 5,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self._api_url = api_url.rstrip("/")
        self._retries_enabled = retries_enabled
        self._max_attempts = max_attempts
        self._timeout = timeout
        self._sleep = sleep
        self._logger = get_logger("artifact_sweeper.github")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
                "User-Agent": "artifact-sweeper",
            }
        )
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_settings(cls, settings: Settings, config: SweepConfig) -> "GitHubClient":
        return cls(
            config.owner,
            config.repo,
            token=settings.token,
            api_url=settings.api_url,
            retries_enabled=config.retries_enabled,
            max_attempts=settings.max_attempts,
            timeout=settings.request_timeout,
        )

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------
    def list_tags(self, per_page: int = 100) -> List[str]:
        """Return the commit SHA of every tag in the repository."""

        shas: List[str] = []
        for page in self._paginate(f"{self.repo_path}/tags", {"per_page": per_page}):
            shas.extend(tag["commit"]["sha"] for tag in page)
        return shas

    def list_workflow_runs(
        self,
        branch: str,
        per_page: int = 100,
        stop_when: Optional[Callable[[List[WorkflowRun]], bool]] = None,
    ) -> List[WorkflowRun]:
        """List runs on *branch*, newest first.

        ``stop_when`` is evaluated on every page; once it returns true that page
        is kept and no further pages are requested.
        """

        runs: List[WorkflowRun] = []
        params = {"per_page": per_page, "branch": branch}
        pages = self._paginate(f"{self.repo_path}/actions/runs", params, key="workflow_runs")
        for page in pages:
            batch = [WorkflowRun.from_api(item) for item in page]
            runs.extend(batch)
            if stop_when is not None and stop_when(batch):
                pages.close()
                break
        return runs

    def list_run_artifacts(self, run_id: int, per_page: int = 100) -> List[Artifact]:
        artifacts: List[Artifact] = []
        path = f"{self.repo_path}/actions/runs/{run_id}/artifacts"
        for page in self._paginate(path, {"per_page": per_page}, key="artifacts"):
            artifacts.extend(Artifact.from_api(item, run_id=run_id) for item in page)
        return artifacts

    def delete_artifact(self, artifact_id: int) -> None:
        self._request("DELETE", f"{self._api_url}{self.repo_path}/actions/artifacts/{artifact_id}")

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    def _paginate(self, path: str, params: Dict[str, Any], key: Optional[str] = None) -> Iterator[PageItems]:
        url: Optional[str] = f"{self._api_url}{path}"
        query: Optional[Dict[str, Any]] = params
        while url:
            response = self._request("GET", url, params=query)
            payload = response.json()
            yield payload[key] if key else payload
            url = response.links.get("next", {}).get("url")
            # The "next" link already carries the query string.
            query = None

    def _request(self, method: str, url: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        retrying = Retrying(
            retry=retry_if_exception_type((RateLimitError, TransientAPIError)),
            stop=stop_after_attempt(self._max_attempts if self._retries_enabled else 1),
            wait=self._wait,
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                return self._send(method, url, params)
        raise AssertionError("unreachable")  # pragma: no cover

    def _send(self, method: str, url: str, params: Optional[Dict[str, Any]]) -> requests.Response:
        try:
            response = self._session.request(method, url, params=params, timeout=self._timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise TransientAPIError(str(exc), method=method, url=url) from exc

        if response.status_code < 400:
            return response

        message = _error_message(response)
        context = {"status_code": response.status_code, "method": method, "url": url}
        if response.status_code in (403, 429):
            limited = _rate_limit(response, message)
            if limited is not None:
                retry_after, secondary = limited
                raise RateLimitError(message, retry_after=retry_after, secondary=secondary, **context)
        if response.status_code >= 500:
            raise TransientAPIError(message, **context)
        raise GitHubAPIError(message, **context)

    @staticmethod
    def _wait(retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RateLimitError):
            return exc.retry_after
        return _BACKOFF(retry_state)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        if isinstance(exc, RateLimitError) and exc.secondary:
            self._logger.warning(
                "Abuse detected for request %s %s, retry count: %d",
                exc.method,
                exc.url,
                retry_state.attempt_number,
            )
        elif isinstance(exc, RateLimitError):
            self._logger.warning(
                "Request quota exhausted for request %s %s, number of total global retries: %d",
                exc.method,
                exc.url,
                retry_state.attempt_number,
            )
        else:
            self._logger.warning("Transient failure: %s", exc)
        self._logger.info("Retrying after %s seconds!", round(delay, 2))


def _error_message(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason or ""
    if isinstance(payload, dict) and payload.get("message"):
        return str(payload["message"])
    return response.text


def _rate_limit(response: requests.Response, message: str) -> Optional[Tuple[float, bool]]:
    """Return ``(retry_after, secondary)`` when *response* is a rate-limit rejection."""

    headers = response.headers
    retry_after = headers.get("Retry-After")
    if retry_after is not None:
        try:
            return float(retry_after), True
        except ValueError:
            return SECONDARY_LIMIT_DELAY, True
    if headers.get("X-RateLimit-Remaining") == "0":
        reset = headers.get("X-RateLimit-Reset")
        delay = max(float(reset) - time.time(), 0.0) + 1 if reset else SECONDARY_LIMIT_DELAY
        return delay, False
    lowered = message.lower()
    if "secondary rate limit" in lowered or "abuse" in lowered:
        return SECONDARY_LIMIT_DELAY, True
    if response.status_code == 429:
        return SECONDARY_LIMIT_DELAY, False
    return None


__all__ = ["GitHubClient"]
