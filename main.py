#!/usr/bin/env python3
"""
Device Registrar - automated messaging-app registration on a remote device.

Main entry point for the application.
"""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from dataclasses import dataclass
from typing import Optional

from registrar.core.config import RegistrarSettings, get_settings
from registrar.core.exceptions import (
    ConfigurationError,
    OtpRejectedError,
    RegistrarError,
)
from registrar.core.infra.redis_manager import RedisManager
from registrar.core.logger import setup_structured_logging
from registrar.device.appium import AppiumDriver
from registrar.services.notification import StatusEvent, StatusEventBus
from registrar.services.otp_manager import OTPPoller, SmsActivateProvider, parse_messages
from registrar.services.registration import AutoRegistrationRunner, RegistrationOrchestrator
from registrar.services.session import PhoneSessionStore, SessionCacheMirror, create_backend
from registrar.utils.masking import mask_phone


@dataclass
class Runtime:
    """Process-wide components, built once at start and closed at exit."""

    settings: RegistrarSettings
    store: PhoneSessionStore
    bus: StatusEventBus
    mirror: SessionCacheMirror
    driver: Optional[AppiumDriver] = None
    orchestrator: Optional[RegistrationOrchestrator] = None

    async def aclose(self) -> None:
        logger = logging.getLogger(__name__)
        self.mirror.detach()
        if self.driver is not None:
            try:
                await self.driver.aclose()
            except Exception as e:
                logger.error(f"Error closing automation client: {e}")
        RedisManager.reset()


def build_runtime(settings: RegistrarSettings, with_device: bool = True) -> Runtime:
    """Wire the store, bus, cache mirror and (optionally) the device orchestrator."""
    backend = create_backend(settings.redis_url)
    bus = StatusEventBus()
    mirror = SessionCacheMirror(backend, ttl_seconds=settings.session_cache_ttl)
    mirror.attach(bus)
    runtime = Runtime(settings=settings, store=PhoneSessionStore(backend), bus=bus, mirror=mirror)

    if with_device:
        runtime.driver = AppiumDriver(settings)
        runtime.orchestrator = RegistrationOrchestrator(
            runtime.driver, runtime.store, bus=bus, settings=settings
        )
    return runtime


def _print_status(event: StatusEvent) -> None:
    line = f"[{event.session_id}] {event.status.value}"
    if event.error:
        line += f" ({event.error_type}: {event.error})"
    print(line, flush=True)


async def _prompt_code(prompt: str) -> str:
    return (await asyncio.to_thread(input, prompt)).strip()


async def run_register(args: argparse.Namespace, settings: RegistrarSettings) -> int:
    """
    Register one phone number.

    With an activation id the code is fetched from the OTP source;
    otherwise it is read from stdin.
    """
    logger = logging.getLogger(__name__)
    runtime = build_runtime(settings)
    runtime.bus.subscribe(_print_status)
    orchestrator = runtime.orchestrator
    session_id = args.session_id or uuid.uuid4().hex[:12]

    provider = None
    try:
        if args.activation_id:
            provider = SmsActivateProvider(settings)
            poller = OTPPoller(
                provider,
                timeout_seconds=settings.otp_poll_timeout_seconds,
                initial_interval=settings.otp_poll_initial_interval,
                max_interval=settings.otp_poll_max_interval,
            )
            runner = AutoRegistrationRunner(orchestrator, poller, settings)
            result = await runner.run(session_id, args.phone, args.country_code, args.activation_id)
        else:
            await orchestrator.start_registration(session_id, args.phone, args.country_code)
            while True:
                code = await _prompt_code(f"Enter the code sent to {mask_phone(args.phone)}: ")
                try:
                    result = await orchestrator.submit_otp(session_id, code)
                    break
                except OtpRejectedError as e:
                    if not e.recoverable:
                        raise
                    print(e.message, flush=True)

        print(json.dumps(result.to_dict(), indent=2))
        return 0
    except RegistrarError as e:
        logger.error(f"Registration failed: {e.message}")
        print(json.dumps(e.to_dict(), indent=2), file=sys.stderr)
        return 1
    finally:
        if provider is not None:
            await provider.aclose()
        await runtime.aclose()


async def run_messages(args: argparse.Namespace, settings: RegistrarSettings) -> int:
    """Print the stored history of a phone with codes classified on read."""
    runtime = build_runtime(settings, with_device=False)
    try:
        data = runtime.store.get_full_phone_data(args.phone)
        data["messages"] = parse_messages(runtime.store.get_messages(args.phone))
        print(json.dumps(data, indent=2))
        return 0 if data["info"] is not None else 1
    finally:
        await runtime.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Device Registrar - automated messaging-app registration"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (defaults to LOG_LEVEL)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    register = commands.add_parser("register", help="Register a phone number on the device")
    register.add_argument("--phone", required=True, help="Phone number in E.164 format")
    register.add_argument("--country-code", default=None, help="Country calling code")
    register.add_argument(
        "--activation-id",
        default=None,
        help="SMS-Activate activation id; without it the code is read from stdin",
    )
    register.add_argument("--session-id", default=None, help="Session id (random if omitted)")

    messages = commands.add_parser("messages", help="Show stored messages of a phone number")
    messages.add_argument("--phone", required=True, help="Phone number in any format")
    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()

    try:
        settings = get_settings()
    except Exception as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    setup_structured_logging(args.log_level or settings.log_level, json_format=settings.log_json)
    logger = logging.getLogger(__name__)

    try:
        if args.command == "register":
            exit_code = asyncio.run(run_register(args, settings))
        else:
            exit_code = asyncio.run(run_messages(args, settings))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}")
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
