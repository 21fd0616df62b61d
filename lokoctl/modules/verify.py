"""Cluster readiness verification.

Readiness is polled with a fixed interval until a condition holds or a
deadline passes:

    PENDING --condition holds--> READY
    PENDING --deadline passed--> TIMED_OUT

The clock and sleep functions are injectable so the state machine can be
exercised without real waiting.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from ..config import Config
from ..errors import VerificationTimeoutError
from .k8s import KubeClient

logger = logging.getLogger("lokoctl.verify")


class Readiness(str, Enum):
    PENDING = 'pending'
    READY = 'ready'
    TIMED_OUT = 'timed_out'


@dataclass
class Observation:
    """Result of a single readiness check."""
    ready: bool
    detail: str = ""


class Poller:
    """Bounded-retry poller with a fixed interval and an overall deadline."""

    def __init__(
        self,
        interval: float = None,
        timeout: float = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = Config.VERIFY_INTERVAL if interval is None else interval
        self.timeout = Config.VERIFY_TIMEOUT if timeout is None else timeout
        self.clock = clock
        self.sleep = sleep
        self.state = Readiness.PENDING
        self.attempts = 0

    def wait(self, check: Callable[[], Observation], what: str) -> Observation:
        """Run ``check`` until it reports ready.

        The first check runs immediately.

        Raises:
            VerificationTimeoutError: If the deadline passes first. The
                message includes the last observation.
        """
        self.state = Readiness.PENDING
        self.attempts = 0
        deadline = self.clock() + self.timeout

        while True:
            self.attempts += 1
            observation = check()
            if observation.ready:
                self.state = Readiness.READY
                logger.debug(f"{what} ready after {self.attempts} check(s): {observation.detail}")
                return observation

            if self.clock() >= deadline:
                self.state = Readiness.TIMED_OUT
                raise VerificationTimeoutError(
                    f"timed out after {self.timeout:g}s waiting for {what}: {observation.detail}"
                )

            logger.debug(f"⏳ Waiting for {what}: {observation.detail}")
            self.sleep(self.interval)


def deployment_ready(desired: int, available: int) -> bool:
    """Whether a deployment is ready.

    A deployment with no desired replicas has not been scheduled yet and is
    never ready.
    """
    return desired > 0 and available == desired


def node_readiness_check(kube: KubeClient, expected_nodes: int) -> Callable[[], Observation]:
    def check() -> Observation:
        try:
            ready = kube.ready_nodes()
        except (ApiException, HTTPError) as e:
            # The API server of a freshly created cluster may not answer yet.
            return Observation(False, f"listing nodes failed: {e}")
        return Observation(
            ready >= expected_nodes,
            f"{ready} of {expected_nodes} expected nodes ready",
        )
    return check


def deployment_readiness_check(kube: KubeClient, namespace: str, name: str) -> Callable[[], Observation]:
    def check() -> Observation:
        try:
            replicas = kube.deployment_replicas(namespace, name)
        except (ApiException, HTTPError) as e:
            return Observation(False, f"reading deployment {namespace}/{name} failed: {e}")
        if replicas is None:
            return Observation(False, f"deployment {namespace}/{name} not found")
        desired, available = replicas
        if desired == 0:
            return Observation(False, f"no replicas scheduled for deployment {namespace}/{name}")
        return Observation(
            deployment_ready(desired, available),
            f"{available} of {desired} replicas available for deployment {namespace}/{name}",
        )
    return check


def verify_cluster(kube: KubeClient, expected_nodes: int, poller: Optional[Poller] = None) -> None:
    """Wait until at least ``expected_nodes`` nodes report ready."""
    poller = poller or Poller()
    observation = poller.wait(node_readiness_check(kube, expected_nodes), "cluster nodes")
    logger.info(f"✅ Cluster is ready: {observation.detail}")


def wait_for_deployment(kube: KubeClient, namespace: str, name: str, poller: Optional[Poller] = None) -> None:
    """Wait until all desired replicas of a deployment are available."""
    poller = poller or Poller(interval=Config.DEPLOYMENT_INTERVAL, timeout=Config.DEPLOYMENT_TIMEOUT)
    poller.wait(deployment_readiness_check(kube, namespace, name), f"deployment {namespace}/{name}")
    logger.info(f"✅ Deployment {namespace}/{name} is available")
