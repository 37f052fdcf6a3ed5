"""Tests for the command line entry point."""

import json

import pytest

from main import build_parser, build_runtime, run_messages
from registrar.core.config.settings import RegistrarSettings
from registrar.services.session.models import StoredMessage


def test_register_arguments():
    args = build_parser().parse_args(
        ["register", "--phone", "+14155550100", "--country-code", "1", "--activation-id", "77"]
    )
    assert args.command == "register"
    assert args.phone == "+14155550100"
    assert args.country_code == "1"
    assert args.activation_id == "77"
    assert args.session_id is None


def test_command_is_required():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


@pytest.mark.asyncio
async def test_build_runtime_wiring():
    runtime = build_runtime(RegistrarSettings())
    try:
        assert runtime.orchestrator is not None
        assert runtime.orchestrator.bus is runtime.bus
        # the cache mirror listens on the bus
        assert runtime.bus.subscriber_count == 1
    finally:
        await runtime.aclose()
    assert runtime.bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_messages_for_unknown_phone(capsys):
    args = build_parser().parse_args(["messages", "--phone", "+14155550100"])
    assert await run_messages(args, RegistrarSettings()) == 1

    data = json.loads(capsys.readouterr().out)
    assert data["info"] is None
    assert data["messages"] == []


@pytest.mark.asyncio
async def test_messages_are_classified(monkeypatch, capsys):
    import main

    original = main.build_runtime

    def seeded(settings, with_device=True):
        runtime = original(settings, with_device=with_device)
        runtime.store.store_messages(
            "+14155550100", [StoredMessage(index=0, text="Your WhatsApp code: 482913")]
        )
        return runtime

    monkeypatch.setattr(main, "build_runtime", seeded)
    args = build_parser().parse_args(["messages", "--phone", "+14155550100"])
    assert await run_messages(args, RegistrarSettings()) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["info"]["messages_available"] == 1
    assert data["messages"][0]["code"] == "482913"
