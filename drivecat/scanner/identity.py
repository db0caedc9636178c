"""Physical drive identification and catalog verification."""

import json
import logging
import re
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from drivecat.database import Database, Drive
from drivecat.database.drives import get_drive, update_drive_identity

logger = logging.getLogger(__name__)

_HDPARM_SERIAL = re.compile(r"Serial Number:\s*(.*)")


class DriveIdentityError(Exception):
    """Raised when the drive behind a mount point cannot be identified."""


class DriveNotFoundError(DriveIdentityError):
    """Raised when the drive id does not exist in the catalog."""


class VerificationDeclinedError(Exception):
    """Raised when the operator refuses to scan a drive whose serial differs."""


@dataclass
class DeviceInfo:
    device: str
    partition_name: str
    parent: str
    serial: str
    model: str | None = None
    vendor: str | None = None
    fstype: str | None = None


def resolve_device(
    mount_point: str | Path,
    run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> DeviceInfo:
    """Find the partition, parent disk and hardware identity behind a mount point."""
    mount_point = str(Path(mount_point).resolve())
    device = _get_device_for_mount(mount_point, run)

    partition = _lsblk_one(device, ["NAME", "PATH", "PKNAME", "FSTYPE"], run)
    partition_name = partition.get("name") or Path(device).name
    parent_name = partition.get("pkname")
    parent = f"/dev/{parent_name}" if parent_name else device

    disk = _lsblk_one(parent, ["NAME", "SERIAL", "MODEL", "VENDOR"], run, whole_disk=True)
    serial = _clean(disk.get("serial"))
    if not serial and parent.startswith("/dev/sd"):
        serial = _hdparm_serial(parent, run)
    if not serial:
        raise DriveIdentityError(
            f"Could not read serial number from device {parent}. This can happen with "
            "virtual drives, some USB-to-SATA adapters, or without root privileges."
        )

    return DeviceInfo(
        device=device,
        partition_name=partition_name,
        parent=parent,
        serial=serial,
        model=_clean(disk.get("model")),
        vendor=_clean(disk.get("vendor")),
        fstype=_clean(partition.get("fstype")),
    )


def _get_device_for_mount(path: str, run: Callable[..., subprocess.CompletedProcess]) -> str:
    result = _run(run, ["findmnt", "-n", "-o", "SOURCE", "-T", path])
    if result.returncode != 0:
        raise DriveIdentityError(f"Could not find mount point for path: {path}")

    device = result.stdout.strip()
    if not device:
        raise DriveIdentityError(f"No device found for path: {path}")

    return device


def _lsblk_one(
    device: str,
    columns: list[str],
    run: Callable[..., subprocess.CompletedProcess],
    whole_disk: bool = False,
) -> dict:
    args = ["lsblk", "-J", "-o", ",".join(columns)]
    if whole_disk:
        args.append("-d")
    result = _run(run, [*args, device])
    if result.returncode != 0:
        raise DriveIdentityError(f"lsblk could not describe device: {device}")

    try:
        devices = json.loads(result.stdout).get("blockdevices") or []
    except json.JSONDecodeError as e:
        raise DriveIdentityError(f"Unparseable lsblk output for {device}: {e}") from e
    if not devices:
        raise DriveIdentityError(f"lsblk returned no information for device: {device}")
    return devices[0]


def _hdparm_serial(device: str, run: Callable[..., subprocess.CompletedProcess]) -> str | None:
    logger.debug("Querying serial number of %s with hdparm", device)
    result = _run(run, ["hdparm", "-I", device])
    if result.returncode != 0:
        return None
    match = _HDPARM_SERIAL.search(result.stdout)
    return _clean(match.group(1)) if match else None


def _run(run: Callable[..., subprocess.CompletedProcess], args: list[str]):
    try:
        return run(args, capture_output=True, text=True, check=False, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as e:
        raise DriveIdentityError(f"{args[0]} failed: {e}") from e


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


def verify_drive(
    db: Database,
    drive_id: int,
    device: DeviceInfo,
    confirm: Callable[[str], bool],
    update_identity: bool = True,
) -> Drive:
    """Check the physical serial against the catalog before a scan starts.

    A mismatch is only accepted when ``confirm`` returns True. Differing
    vendor, model and filesystem values are then written back unless
    ``update_identity`` is False.
    """
    drive = get_drive(db.conn, drive_id)
    if drive is None:
        raise DriveNotFoundError(f"No drive found in catalog with ID {drive_id}")

    if device.serial == drive.serial:
        logger.info("Serial %s matches drive %d", device.serial, drive_id)
    else:
        message = (
            f"The physical drive serial ({device.serial!r}) does not match the catalog "
            f"serial ({drive.serial!r}). Continuing will index the physical drive "
            f"under the catalog entry for {drive.serial!r}."
        )
        logger.warning("Serial mismatch for drive %d: %s", drive_id, message)
        if not confirm(message):
            raise VerificationDeclinedError(f"Scan of drive {drive_id} declined by operator")
        logger.warning("Operator confirmed scanning drive %d despite serial mismatch", drive_id)

    if update_identity:
        changes = _identity_changes(drive, device)
        if changes:
            logger.info("Updating drive %d identity: %s", drive_id, changes)
            update_drive_identity(db.conn, drive_id, changes)
            drive = get_drive(db.conn, drive_id) or drive

    return drive


def _identity_changes(drive: Drive, device: DeviceInfo) -> dict[str, str]:
    observed = {"vendor": device.vendor, "model": device.model, "filesystem": device.fstype}
    return {
        field: value
        for field, value in observed.items()
        if value and value != getattr(drive, field)
    }
