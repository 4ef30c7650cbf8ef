"""Polling loops that wait for chain state to catch up.

Both loops are unbounded unless the caller passes ``max_attempts`` or
``timeout``; the only retried conditions are "tx not found yet" and
"connection refused".
"""

import logging
import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from cwharness.config import settings
from cwharness.errors import PollTimeoutError
from cwharness.gas import NodeAddress, TxId
from cwharness.pipeline import ChainCommand, NodeStatus, TxEnvelope

if TYPE_CHECKING:
    from cwharness.network.base import Network

logger = logging.getLogger(__name__)


class _Backoff:
    """Fixed-interval sleeper with optional attempt and wall-clock bounds."""

    def __init__(
        self,
        what: str,
        interval: float,
        max_attempts: int | None = None,
        timeout: float | None = None,
    ):
        self.what = what
        self.interval = interval
        self.max_attempts = max_attempts
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self.attempts = 0

    def sleep(self, interval: float | None = None) -> None:
        self.attempts += 1
        if self.max_attempts is not None and self.attempts >= self.max_attempts:
            raise PollTimeoutError(f"{self.what}: gave up after {self.attempts} attempts")
        if self.deadline is not None and time.monotonic() >= self.deadline:
            raise PollTimeoutError(f"{self.what}: timed out after {self.attempts} attempts")
        time.sleep(self.interval if interval is None else interval)


def wait_for_tx(
    network: "Network",
    tx_id: TxId,
    *,
    interval: float | None = None,
    max_attempts: int | None = None,
    timeout: float | None = None,
) -> TxEnvelope:
    """Query ``tx_id`` until it is included in a block.

    Raises ``TxExecuteError`` if the included transaction failed or the query
    fails for any reason other than "not found".
    """
    node = network.node_address()
    backoff = _Backoff(
        f"waiting for tx {tx_id}",
        settings.tx_poll_interval if interval is None else interval,
        max_attempts,
        timeout,
    )

    while True:
        envelope = network.command().query(node).tx(tx_id)
        if envelope is not None:
            logger.debug("tx %s included at height %s", tx_id, envelope.height)
            return envelope
        backoff.sleep()


def wait_for_blocks_with(
    command: Callable[[], ChainCommand],
    node: NodeAddress,
    *,
    reachable_interval: float | None = None,
    interval: float | None = None,
    max_attempts: int | None = None,
    timeout: float | None = None,
) -> int:
    """Wait until ``node`` answers and then produces a new block.

    Returns the first height strictly greater than the height seen when the
    node first became reachable.
    """
    reachable_interval = settings.tx_poll_interval if reachable_interval is None else reachable_interval
    interval = settings.block_poll_interval if interval is None else interval
    backoff = _Backoff(f"waiting for blocks on {node}", reachable_interval, max_attempts, timeout)

    status: NodeStatus | None = command().query(node).status()
    while status is None:
        backoff.sleep()
        status = command().query(node).status()

    start_height = status.height
    logger.debug("%s reachable at height %d", node, start_height)

    while True:
        backoff.sleep(interval)
        status = command().query(node).status()
        if status is None:
            logger.warning("%s refused connection after being reachable; retrying", node)
            continue
        if status.height > start_height:
            logger.info("%s produced block %d", node, status.height)
            return status.height


def wait_for_blocks(
    network: "Network",
    *,
    interval: float | None = None,
    max_attempts: int | None = None,
    timeout: float | None = None,
) -> int:
    """Wait until the network's node is reachable and its height advances."""
    return wait_for_blocks_with(
        network.command,
        network.node_address(),
        interval=interval,
        max_attempts=max_attempts,
        timeout=timeout,
    )
