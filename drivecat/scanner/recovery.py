"""Recovery from transient I/O errors by remounting the drive."""

import errno
import json
import logging
import re
import subprocess
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

TRANSIENT_ERRNOS = {
    errno.EIO,
    errno.EACCES,
    errno.EPERM,
    errno.ENXIO,
    errno.ENODEV,
    errno.ESTALE,
    errno.ENOTCONN,
}

TRANSIENT_MESSAGES = ("Input/output error", "Permission denied", "stat failed")

_PARTITION_SUFFIX = re.compile(r"(\d+)$")


def is_transient_io_error(exc: BaseException) -> bool:
    """Whether ``exc`` looks like a drive dropping out rather than a bad file."""
    if isinstance(exc, OSError) and exc.errno in TRANSIENT_ERRNOS:
        return True
    message = str(exc)
    return any(fragment in message for fragment in TRANSIENT_MESSAGES)


class RemountController:
    """Unmounts and remounts a partition identified by its disk serial.

    The kernel may assign a different device name after a disconnect, so the
    partition is located again through ``lsblk`` on every attempt.
    """

    def __init__(
        self,
        mount_point: str,
        serial: str,
        partition_name: str,
        max_attempts: int = 5,
        backoff_seconds: float = 10.0,
        mount_timeout: int = 60,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.mount_point = mount_point
        self.serial = serial
        self.partition_name = partition_name
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.mount_timeout = mount_timeout
        self.run = run
        self.sleep = sleep

    def recover(self) -> bool:
        logger.warning("Attempting to remount %s (serial %s)", self.mount_point, self.serial)
        self._command(["umount", self.mount_point])

        for attempt in range(1, self.max_attempts + 1):
            device = self.find_partition()
            if device is None:
                logger.warning(
                    "Remount attempt %d/%d: no partition for serial %s",
                    attempt,
                    self.max_attempts,
                    self.serial,
                )
            elif self._mount(device) and self.is_mounted():
                logger.info("Remounted %s at %s on attempt %d", device, self.mount_point, attempt)
                return True
            else:
                logger.warning(
                    "Remount attempt %d/%d: mounting %s failed",
                    attempt,
                    self.max_attempts,
                    device,
                )

            if attempt < self.max_attempts:
                self.sleep(self.backoff_seconds)

        logger.error("Giving up on %s after %d remount attempts", self.mount_point, self.max_attempts)
        return False

    def find_partition(self) -> str | None:
        """Device path of the partition on the disk with our serial, if attached."""
        result = self._command(["lsblk", "-J", "-o", "NAME,PATH,SERIAL,TYPE,MOUNTPOINT"])
        if result is None or result.returncode != 0:
            return None

        try:
            devices = json.loads(result.stdout).get("blockdevices", [])
        except json.JSONDecodeError as e:
            logger.warning("Unparseable lsblk output: %s", e)
            return None

        for disk in devices:
            if (disk.get("serial") or "").strip() != self.serial:
                continue
            return self._match_child(disk.get("children") or [])
        return None

    def _match_child(self, children: list[dict]) -> str | None:
        for child in children:
            if child.get("name") == self.partition_name:
                return child.get("path") or f"/dev/{child['name']}"

        wanted = _PARTITION_SUFFIX.search(self.partition_name)
        if wanted is None:
            return None
        for child in children:
            suffix = _PARTITION_SUFFIX.search(child.get("name", ""))
            if suffix and suffix.group(1) == wanted.group(1):
                return child.get("path") or f"/dev/{child['name']}"
        return None

    def is_mounted(self) -> bool:
        result = self._command(["findmnt", "-n", "-o", "SOURCE", self.mount_point])
        return result is not None and result.returncode == 0 and bool(result.stdout.strip())

    def _mount(self, device: str) -> bool:
        result = self._command(["mount", device, self.mount_point], timeout=self.mount_timeout)
        return result is not None and result.returncode == 0

    def _command(
        self, args: list[str], timeout: int | None = None
    ) -> subprocess.CompletedProcess | None:
        try:
            return self.run(
                args,
                capture_output=True,
                text=True,
                check=False,
                timeout=timeout or self.mount_timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("%s failed: %s", args[0], e)
            return None
