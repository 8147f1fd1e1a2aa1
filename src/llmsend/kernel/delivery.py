"""Send orchestration.

One send = cancel modal state, paste the marker-framed payload as a single
block, wait for large pastes to settle, press submit, and (optionally) retry
the submit key once if the pane output does not change.

Delivery runs on a background thread. Sends to one pane never interleave:
an in-process lock plus a lockfile serialize them across processes.
"""
from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import IO, TYPE_CHECKING, Callable, Dict, List, Optional, Tuple

from ..contracts.v1 import DeliveryResult, OutgoingPayload, PaneAddress, SendOptions
from ..errors import SendInProgressError, SubmitNotAcknowledged
from ..util.file_lock import LockUnavailableError, acquire_lockfile, release_lockfile
from .annotations import Document
from .extractor import text_digest
from .markers import frame_payload
from .payload import document_payload
from .settings import ToolProfile

if TYPE_CHECKING:
    from ..runners import ScrollbackAccessor

logger = logging.getLogger("llmsend.delivery")


@dataclass
class _Held:
    pane_id: str
    lock: threading.Lock
    lockfile: Optional[IO[bytes]] = None


class Delivery:
    """Handle for one in-flight send."""

    def __init__(self, pane_id: str):
        self.pane_id = pane_id
        self._done = threading.Event()
        self._abandon = threading.Event()
        self._result: Optional[DeliveryResult] = None
        self._error: Optional[BaseException] = None
        self.thread: Optional[threading.Thread] = None

    def abandon(self) -> None:
        """Stop waiting for acknowledgment. A paste already sent is still submitted."""
        self._abandon.set()

    @property
    def abandoned(self) -> bool:
        return self._abandon.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> DeliveryResult:
        if not self._done.wait(timeout):
            raise TimeoutError(f"delivery to {self.pane_id} still in progress")
        if self._error is not None:
            raise self._error
        assert self._result is not None
        return self._result


def _lock_name(pane_id: str) -> str:
    return "pane-" + re.sub(r"[^A-Za-z0-9_.-]", "_", pane_id) + ".lock"


class SendOrchestrator:
    def __init__(
        self,
        accessor: "ScrollbackAccessor",
        *,
        profile: Optional[ToolProfile] = None,
        history_lines: int = 10000,
        lock_dir: Optional[Path] = None,
        background: bool = True,
        sleep: Callable[[float], None] = time.sleep,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.accessor = accessor
        self.profile = profile or ToolProfile(name="default")
        self.history_lines = int(history_lines)
        self.lock_dir = lock_dir
        self.background = background
        self._sleep = sleep
        self._now = now
        self._guard = threading.Lock()
        # pane id -> (lock, number of senders holding or waiting on it)
        self._pane_locks: Dict[str, Tuple[threading.Lock, int]] = {}

    # -- exclusion -------------------------------------------------------

    def _checkout(self, pane_id: str) -> threading.Lock:
        with self._guard:
            lock, users = self._pane_locks.get(pane_id) or (threading.Lock(), 0)
            self._pane_locks[pane_id] = (lock, users + 1)
            return lock

    def _checkin(self, pane_id: str) -> None:
        with self._guard:
            lock, users = self._pane_locks[pane_id]
            if users <= 1:
                del self._pane_locks[pane_id]
            else:
                self._pane_locks[pane_id] = (lock, users - 1)

    def _acquire(self, address: PaneAddress, *, blocking: bool) -> _Held:
        pane_id = address.pane_id
        lock = self._checkout(pane_id)
        if not lock.acquire(blocking=blocking):
            self._checkin(pane_id)
            raise SendInProgressError(f"a send to {pane_id} is already in progress", details={"pane": pane_id})
        if self.lock_dir is None:
            return _Held(pane_id=pane_id, lock=lock)
        try:
            f = acquire_lockfile(self.lock_dir / _lock_name(pane_id), blocking=blocking)
        except LockUnavailableError as e:
            lock.release()
            self._checkin(pane_id)
            raise SendInProgressError(
                f"a send to {pane_id} is already in progress (another process)",
                details={"pane": pane_id},
            ) from e
        except BaseException:
            lock.release()
            self._checkin(pane_id)
            raise
        return _Held(pane_id=pane_id, lock=lock, lockfile=f)

    def _release(self, held: _Held) -> None:
        try:
            if held.lockfile is not None:
                release_lockfile(held.lockfile)
        finally:
            held.lock.release()
            self._checkin(held.pane_id)

    # -- sending -----------------------------------------------------------

    def send(
        self,
        address: PaneAddress,
        payload: OutgoingPayload,
        opts: Optional[SendOptions] = None,
        *,
        on_submitted: Optional[Callable[[], None]] = None,
    ) -> Delivery:
        if not payload.text.strip():
            raise ValueError("nothing to send: payload is empty")
        opts = opts or SendOptions()
        delivery = Delivery(address.pane_id)
        held = None if opts.wait_for_lock else self._acquire(address, blocking=False)

        def run() -> None:
            self._run(delivery, address, payload, opts, held, on_submitted)

        if not self.background:
            run()
            return delivery
        # Not a daemon thread: an interrupted process still finishes the paste + submit.
        t = threading.Thread(target=run, name=f"llmsend-send-{address.pane_id}", daemon=False)
        delivery.thread = t
        t.start()
        return delivery

    def send_document(self, address: PaneAddress, document: Document, opts: Optional[SendOptions] = None) -> Delivery:
        opts = opts or SendOptions()
        payload = document_payload(document, filtered=opts.filtered)
        on_submitted = document.clear if opts.clear_after_send else None
        return self.send(address, payload, opts, on_submitted=on_submitted)

    def forward_keys(self, address: PaneAddress, keys: List[str]) -> None:
        """Pass raw keypresses (menu choices, Escape, ...) to the assistant."""
        held = self._acquire(address, blocking=True)
        try:
            self.accessor.cancel_modal_state(address)
            self.accessor.send_keys(address, keys)
        finally:
            self._release(held)

    def paste_text(self, address: PaneAddress, text: str) -> None:
        """Paste unframed text into a pane without submitting it."""
        if not text:
            raise ValueError("nothing to paste: text is empty")
        held = self._acquire(address, blocking=True)
        try:
            self.accessor.cancel_modal_state(address)
            self.accessor.send_text(address, text)
        finally:
            self._release(held)
        logger.info("pasted %d chars", len(text), extra={"op": "append", "pane": address.pane_id, "role": address.role.value})

    def _run(
        self,
        delivery: Delivery,
        address: PaneAddress,
        payload: OutgoingPayload,
        opts: SendOptions,
        held: Optional[_Held],
        on_submitted: Optional[Callable[[], None]],
    ) -> None:
        try:
            if held is None:
                held = self._acquire(address, blocking=True)
            if delivery.abandoned:
                # Nothing was written yet, so nothing is left half-done.
                delivery._result = DeliveryResult(pane_id=address.pane_id, status="abandoned", payload_bytes=payload.size)
                return
            delivery._result = self._deliver(delivery, address, payload, opts, on_submitted)
        except Exception as e:  # re-raised from Delivery.wait()
            logger.error("delivery failed: %s", e, extra={"op": "send", "pane": address.pane_id})
            delivery._error = e
        finally:
            if held is not None:
                self._release(held)
            delivery._done.set()

    def _output_state(self, address: PaneAddress) -> str:
        # Compared for change, not growth: once tmux history is full, new output
        # scrolls old lines away and the capture stops getting longer.
        return text_digest(self.accessor.capture(address, self.history_lines).rstrip())

    def _deliver(
        self,
        delivery: Delivery,
        address: PaneAddress,
        payload: OutgoingPayload,
        opts: SendOptions,
        on_submitted: Optional[Callable[[], None]],
    ) -> DeliveryResult:
        profile = self.profile
        extra = {"op": "send", "pane": address.pane_id, "tool": profile.name}

        self.accessor.cancel_modal_state(address)
        self.accessor.send_text(address, frame_payload(payload.text, now=self._now()))

        size = payload.size
        delay = profile.submit_delay(size)
        if delay > 0:
            logger.info("large payload (%d bytes); waiting %.2fs before submit", size, delay, extra=extra)
            self._sleep(delay)

        baseline = self._output_state(address)
        self.accessor.send_submit(address, profile.submit_key)
        attempts = 1
        logger.info("submitted %d bytes", size, extra=extra)
        if on_submitted is not None:
            on_submitted()

        def result(status: str, warnings: Optional[List[str]] = None) -> DeliveryResult:
            return DeliveryResult(
                pane_id=address.pane_id,
                status=status,
                payload_bytes=size,
                submit_delay=delay,
                submit_attempts=attempts,
                warnings=list(warnings or []),
            )

        if not (opts.submit_retry and profile.submit_retry):
            return result("submitted")
        if delivery.abandoned:
            return result("submitted", ["abandoned before acknowledgment"])

        self._sleep(profile.ack_timeout)
        if self._output_state(address) != baseline:
            return result("acknowledged")
        if delivery.abandoned:
            return result("submitted", ["abandoned before acknowledgment"])

        logger.warning("no output after submit; retrying submit once", extra=extra)
        self._sleep(profile.retry_delay + delay)
        self.accessor.send_submit(address, profile.submit_key)
        attempts = 2
        self._sleep(profile.ack_timeout)
        if self._output_state(address) != baseline:
            return result("acknowledged")

        msg = str(SubmitNotAcknowledged(f"no output from {address.pane_id} after {attempts} submit attempts; press submit manually if needed"))
        logger.warning(msg, extra=extra)
        return result("unacknowledged", [msg])
