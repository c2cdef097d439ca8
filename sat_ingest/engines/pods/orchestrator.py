"""
Pod Lifecycle Orchestrator

Keeps at most one non-finished pod per project and runs scripts inside it.

Both collaborators are optional: without a platform client every operation
returns None, without an exec channel scripts are skipped.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sat_ingest.core.config import Settings
from sat_ingest.core.exceptions import PodReadinessTimeoutError
from sat_ingest.core.logging import get_logger
from sat_ingest.core.metrics import record_pod_operation
from sat_ingest.engines.pods.client import PodPlatformClient, build_pod_manifest
from sat_ingest.engines.pods.executor import IPodExecutor
from sat_ingest.engines.pods.schemas import (
    EnvVar,
    ExecOptions,
    InferenceActionType,
    InferenceScript,
    StatusCallback,
    is_finished,
    is_running,
    join_args,
    pod_phase,
)

logger = get_logger(__name__)

Pod = Dict[str, Any]
Sleep = Callable[[float], Awaitable[Any]]


class PodOrchestrator:

    def __init__(
        self,
        client: Optional[PodPlatformClient],
        executor: Optional[IPodExecutor],
        settings: Settings,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.executor = executor
        self.settings = settings
        self.sleep = sleep

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def pod_name(self, project_id: str) -> str:
        prefix = self.settings.POD_NAME_PREFIX
        return project_id if project_id.startswith(prefix) else f"{prefix}{project_id}"

    async def get_pod(self, project_id: str) -> Optional[Pod]:
        """Current pod of the project, or None when there is none."""
        if not self.client:
            return None
        return await self.client.get_pod(self.pod_name(project_id))

    async def create_pod(
        self,
        project_id: str,
        extra_env: Optional[List[EnvVar]] = None,
    ) -> Optional[Pod]:
        if not self.client:
            return None

        name = self.pod_name(project_id)
        manifest = build_pod_manifest(name, project_id, self.settings, extra_env)
        pod = await self.client.create_pod(manifest)

        record_pod_operation("create", "success")
        logger.info("pod_created", pod_name=name, project_id=project_id)
        return pod

    async def delete_pod(self, project_id: str) -> None:
        if not self.client:
            return

        name = self.pod_name(project_id)
        await self.client.delete_pod(name)

        record_pod_operation("delete", "success")
        logger.info("pod_deleted", pod_name=name, project_id=project_id)

    async def create_or_update_pod(
        self,
        project_id: str,
        extra_env: Optional[List[EnvVar]] = None,
    ) -> Optional[Pod]:
        """
        Reuse the project's pod while it is alive, replace it once finished,
        create one when there is none.
        """
        if not self.client:
            return None

        pod = await self.get_pod(project_id)

        if pod and not is_finished(pod):
            record_pod_operation("reconcile", "reused")
            logger.info(
                "pod_reused",
                pod_name=self.pod_name(project_id),
                phase=pod_phase(pod),
            )
            return pod

        if pod:
            await self.delete_pod(project_id)

        return await self.create_pod(project_id, extra_env)

    async def wait_until_running(self, project_id: str) -> Pod:
        """
        Poll the pod until it is Running.

        Raises:
            PodReadinessTimeoutError: still not running after
                POD_READY_RETRY_LIMIT polls
        """
        retry_limit = self.settings.POD_READY_RETRY_LIMIT
        pod = await self.get_pod(project_id)

        for _ in range(retry_limit):
            if is_running(pod):
                return pod
            await self.sleep(self.settings.POD_READY_RETRY_INTERVAL_SECONDS)
            pod = await self.get_pod(project_id)

        if is_running(pod):
            return pod
        raise PodReadinessTimeoutError(self.pod_name(project_id), retry_limit, project_id=project_id)

    async def exec_script(
        self,
        project_id: str,
        script: InferenceScript,
        action_type: InferenceActionType,
        args: Optional[List[str]] = None,
        on_status: Optional[StatusCallback] = None,
        options: Optional[ExecOptions] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Run script with action_type inside the project's pod.

        Without force_run_pod the call does nothing unless the pod is
        already Running. With it, the pod is reconciled and awaited first;
        a pod that never comes up also makes the call a no-op.
        """
        options = options or ExecOptions()
        if not self.client:
            return None

        pod = await self.get_pod(project_id)

        if not is_running(pod):
            if not options.force_run_pod:
                return None

            await self.create_or_update_pod(project_id, [
                EnvVar(name="INIT_TRAINING", value="TRUE" if options.init_training else "FALSE"),
            ])

            try:
                await self.wait_until_running(project_id)
            except PodReadinessTimeoutError as e:
                record_pod_operation("wait", "timeout")
                logger.warning("pod_not_ready", error=e.message, **e.details)
                return None

        if not self.executor:
            logger.warning("pod_exec_unavailable", pod_name=self.pod_name(project_id))
            return None

        command = [
            self.settings.POD_INTERPRETER,
            InferenceScript(script).value,
            InferenceActionType(action_type).value,
            *join_args(args or []),
        ]

        logger.info("pod_exec_started", action_type=command[2], project_id=project_id)
        status = await self.executor.exec(
            self.settings.AKS_NAMESPACE,
            self.pod_name(project_id),
            command,
            on_status,
        )
        record_pod_operation("exec", "success")

        if options.on_finish:
            await options.on_finish()

        return status

    async def close(self) -> None:
        if self.client:
            await self.client.close()
