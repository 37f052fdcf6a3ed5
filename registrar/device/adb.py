"""ADB reachability check for the target device."""

import asyncio
from typing import Set

from loguru import logger

from registrar.constants import Delays, Timeouts
from registrar.core.exceptions import DeviceUnreachableError


async def _run_adb(adb_path: str, *args: str) -> str:
    """
    Run an adb command and return its stdout.

    Raises:
        DeviceUnreachableError: If adb is missing or does not answer in time
    """
    try:
        process = await asyncio.create_subprocess_exec(
            adb_path,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise DeviceUnreachableError(
            "adb", f"adb executable not found at '{adb_path}'"
        ) from e

    try:
        stdout, stderr = await asyncio.wait_for(
            process.communicate(), timeout=Timeouts.ADB_COMMAND_SECONDS
        )
    except asyncio.TimeoutError as e:
        process.kill()
        raise DeviceUnreachableError(
            "adb", f"adb {' '.join(args)} timed out after {Timeouts.ADB_COMMAND_SECONDS}s"
        ) from e

    if stderr:
        logger.debug(f"adb {' '.join(args)} stderr: {stderr.decode(errors='replace').strip()}")
    return stdout.decode(errors="replace")


def parse_connected_devices(output: str) -> Set[str]:
    """
    Extract serials in ``device`` state from ``adb devices`` output.

    Serials listed as ``offline`` or ``unauthorized`` are not included.
    """
    connected = set()
    for line in output.splitlines():
        parts = line.strip().split()
        if len(parts) >= 2 and parts[1] == "device":
            connected.add(parts[0])
    return connected


async def check_device(udid: str, adb_path: str = "adb") -> None:
    """
    Make sure the device is attached, connecting once over TCP if needed.

    Args:
        udid: ADB serial, e.g. ``127.0.0.1:7555`` for an emulator
        adb_path: Path to the adb executable

    Raises:
        DeviceUnreachableError: If the device is not in ``device`` state
    """
    logger.info(f"Checking device at {udid}")
    output = await _run_adb(adb_path, "devices")
    if udid in parse_connected_devices(output):
        logger.info("Device already connected")
        return

    if ":" in udid:
        logger.info(f"Connecting ADB to {udid}...")
        await _run_adb(adb_path, "connect", udid)
        await asyncio.sleep(Delays.ADB_RECONNECT / 1000)
        output = await _run_adb(adb_path, "devices")
        if udid in parse_connected_devices(output):
            logger.info("Device connected")
            return

    raise DeviceUnreachableError(udid)
