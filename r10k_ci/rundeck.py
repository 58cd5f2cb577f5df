"""CI Rundeck dispatcher.

Starts the r10k deployment job on Rundeck and waits for the execution to finish.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import httpx
from loguru import logger

from puppetfile_sync.config import RundeckSettings
from puppetfile_sync.core.decision import DeploymentRequest
from puppetfile_sync.core.exceptions import DispatchError

_PENDING_STATUSES = {"running", "scheduled", "queued"}
SUCCEEDED = "succeeded"


class RundeckDispatcher:
    """Run r10k jobs through the Rundeck API.

    Args:
        settings: Rundeck connection settings
        transport: Optional httpx transport (used by tests)
        sleep: Function used between status polls
    """

    def __init__(
        self,
        settings: RundeckSettings,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not settings.url:
            raise ValueError("Rundeck URL is not set (RUNDECK_URL)")
        if not settings.token:
            raise ValueError("Rundeck token is not set (RUNDECK_TOKEN)")
        job_ids = settings.job_ids
        missing = [kind for kind in ("deploy_env", "deploy_mod") if not (job_ids.get(kind) or job_ids.get("default"))]
        if missing:
            raise ValueError(f"No Rundeck job configured for {', '.join(missing)}")
        self.settings = settings
        self._sleep = sleep
        self._client = httpx.Client(
            base_url=f"{settings.url.rstrip('/')}/api/{settings.api_version}",
            headers={
                "X-Rundeck-Auth-Token": settings.token,
                "Accept": "application/json",
            },
            transport=transport,
            timeout=30.0,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RundeckDispatcher:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _job_id(self, request: DeploymentRequest) -> str:
        job_ids = self.settings.job_ids
        return job_ids.get(request.kind.value) or job_ids["default"]

    def _request(self, method: str, url: str, **kwargs: object) -> dict:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise DispatchError(
                f"Rundeck API {method} {url} returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.HTTPError as e:
            raise DispatchError(f"Rundeck API {method} {url} failed: {e}") from e
        try:
            return response.json()
        except ValueError as e:
            raise DispatchError(
                f"Rundeck API {method} {url} returned a non-JSON body: {response.text[:200]}"
            ) from e

    def run_job(self, request: DeploymentRequest) -> str:
        """ジョブを起動し、完了まで待つ.

        Args:
            request: デプロイ要求

        Returns:
            実行の終了ステータス（常に "succeeded"）

        Raises:
            DispatchError: 起動失敗、成功以外のステータス、またはタイムアウト
        """
        job_id = self._job_id(request)
        logger.info(f"Starting Rundeck job {job_id} ({request.kind.value}) for {request.module}@{request.branch}")
        execution = self._request("POST", f"/job/{job_id}/run", json={"options": request.as_options()})
        execution_id = execution.get("id")
        if execution_id is None:
            raise DispatchError(f"Rundeck did not return an execution id: {execution}")

        status = str(execution.get("status", "running"))
        deadline = time.monotonic() + self.settings.timeout
        while status in _PENDING_STATUSES:
            if time.monotonic() >= deadline:
                raise DispatchError(
                    f"Rundeck execution {execution_id} did not finish within {self.settings.timeout}s",
                    status=status,
                )
            self._sleep(self.settings.poll_interval)
            status = str(self._request("GET", f"/execution/{execution_id}").get("status"))
            logger.debug(f"Rundeck execution {execution_id}: {status}")

        if status != SUCCEEDED:
            raise DispatchError(f"Rundeck execution {execution_id} finished with status {status}", status=status)

        logger.info(f"Rundeck execution {execution_id} {status}")
        return status
