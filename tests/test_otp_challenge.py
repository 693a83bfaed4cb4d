import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from conftest import grant, ok_message
from scam_registry.auth.otp_challenge import OTPChallenge, format_time, sanitize_code


def test_sanitize_code():
    assert sanitize_code("12a3456") == "123456"
    assert sanitize_code("12-34 5678") == "123456"
    assert sanitize_code("abc") == ""
    assert sanitize_code(None) == ""


def test_format_time():
    assert format_time(300) == "5:00"
    assert format_time(65) == "1:05"
    assert format_time(9) == "0:09"
    assert format_time(-4) == "0:00"


def test_challenge_requires_exactly_one_target():
    session = MagicMock()
    with pytest.raises(ValueError):
        OTPChallenge(session)
    with pytest.raises(ValueError):
        OTPChallenge(session, email="a@b.com", phone_number="5551234567")

    challenge = OTPChallenge(session, phone_number="5551234567")
    assert challenge.target == "5551234567"
    assert challenge.time_left == 300
    assert challenge.can_resend is False
    assert challenge.countdown_label == "Code expires in 5:00"


@pytest.mark.asyncio
async def test_complete_code_auto_submits_once():
    session = MagicMock()
    session.verify_otp = AsyncMock(return_value=False)
    challenge = OTPChallenge(session, email="a@b.com")

    assert challenge.enter("12a") is None
    task = challenge.enter("12a3456")

    assert challenge.code == "123456"
    assert await task is False
    assert challenge.enter("123456") is None
    session.verify_otp.assert_awaited_once_with("a@b.com", None, "123456")
    assert challenge.verified is False
    assert challenge.closed is False


@pytest.mark.asyncio
async def test_retyped_code_auto_submits_again():
    session = MagicMock()
    session.verify_otp = AsyncMock(return_value=False)
    challenge = OTPChallenge(session, email="a@b.com")

    await challenge.enter("123456")
    assert challenge.enter("12345") is None
    task = challenge.enter("123456")

    assert task is not None
    await task
    assert session.verify_otp.await_count == 2


@pytest.mark.asyncio
async def test_successful_verification_closes_challenge():
    session = MagicMock()
    session.verify_otp = AsyncMock(return_value=True)
    challenge = OTPChallenge(session, email="a@b.com")

    assert await challenge.enter("482913") is True

    assert challenge.verified is True
    assert challenge.closed is True
    assert await challenge.submit() is False


@pytest.mark.asyncio
async def test_manual_submit_requires_complete_code():
    session = MagicMock()
    session.verify_otp = AsyncMock(return_value=False)
    challenge = OTPChallenge(session, phone_number="5551234567")
    challenge.code = "123"

    assert await challenge.submit() is False
    session.verify_otp.assert_not_awaited()

    challenge.code = "123456"
    await challenge.submit()
    session.verify_otp.assert_awaited_once_with(None, "5551234567", "123456")


def test_tick_enables_resend_at_zero():
    challenge = OTPChallenge(MagicMock(), email="a@b.com", validity_seconds=2)

    challenge.tick()
    assert challenge.time_left == 1
    assert challenge.can_resend is False

    challenge.tick()
    assert challenge.time_left == 0
    assert challenge.can_resend is True
    assert challenge.countdown_label == "Code has expired"

    challenge.tick()
    assert challenge.time_left == 0


@pytest.mark.asyncio
async def test_resend_resets_countdown():
    on_resend = AsyncMock()
    challenge = OTPChallenge(MagicMock(), email="a@b.com", on_resend=on_resend, validity_seconds=1)

    assert await challenge.resend() is False
    on_resend.assert_not_awaited()

    challenge.tick()
    assert await challenge.resend() is True

    assert challenge.time_left == 1
    assert challenge.can_resend is False
    on_resend.assert_awaited_once_with("a@b.com", None)


@pytest.mark.asyncio
async def test_resend_allows_same_code_to_auto_submit_again():
    session = MagicMock()
    session.verify_otp = AsyncMock(return_value=False)
    challenge = OTPChallenge(session, email="a@b.com", validity_seconds=1)

    await challenge.enter("111111")
    challenge.tick()
    await challenge.resend()

    task = challenge.enter("111111")
    assert task is not None
    await task
    assert session.verify_otp.await_count == 2


@pytest.mark.asyncio
async def test_resend_hook_failure_is_logged():
    on_resend = AsyncMock(side_effect=ConnectionError("offline"))
    challenge = OTPChallenge(MagicMock(), email="a@b.com", on_resend=on_resend, validity_seconds=1)
    challenge.tick()

    assert await challenge.resend() is True
    assert challenge.time_left == 1


@pytest.mark.asyncio
async def test_countdown_runs_to_zero():
    challenge = OTPChallenge(MagicMock(), email="a@b.com", validity_seconds=3)

    with patch("scam_registry.auth.otp_challenge.asyncio.sleep", new=AsyncMock()):
        challenge.start()
        await challenge._timer

    assert challenge.time_left == 0
    assert challenge.can_resend is True


@pytest.mark.asyncio
async def test_register_then_verify_scenario(session, gateway, store):
    gateway.register.return_value = ok_message("Verification code sent to your email")
    gateway.verify_otp.return_value = grant("tok-otp")

    assert await session.register("a@b.com") is True
    challenge = OTPChallenge(session, email="a@b.com")
    assert challenge.target == "a@b.com"

    assert await challenge.enter("482913") is True

    gateway.verify_otp.assert_awaited_once_with(otp="482913", email="a@b.com", phone_number=None)
    assert session.is_authenticated is True
    assert session.user is not None
    assert store.get_token() == "tok-otp"
    assert challenge.verified is True
