"""
Session Manager for the scam registry client
Owns authentication state and the login / OTP / refresh / logout lifecycle
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Set

from scam_registry.auth.token_store import TokenStore
from scam_registry.core.logging import mask_token
from scam_registry.schemas.auth import (
    ApiResponse,
    AuthPayload,
    SessionPhase,
    SessionSnapshot,
    SessionState,
    User
)

logger = logging.getLogger(__name__)

Listener = Callable[[SessionState], None]

PERSISTED_FIELDS = frozenset({"user", "token", "is_authenticated", "is_initialized"})


def _error_message(response: Optional[ApiResponse], fallback: str) -> str:
    if response is not None and response.error and response.error.message:
        return response.error.message
    return fallback


class SessionManager:
    """
    Manages the authentication state of the running client.

    Every operation catches its own failures and reports them through
    ``error`` and a boolean result; nothing propagates to the caller.
    Responses that arrive after the session identity changed (logout, a
    newer credential grant) are discarded without touching state.
    """

    def __init__(self, gateway, store: Optional[TokenStore] = None):
        self.gateway = gateway
        self.store: TokenStore = store if store is not None else gateway.store

        self.user: Optional[User] = None
        self.token: Optional[str] = None
        self.is_authenticated = False
        self.is_loading = False
        self.error: Optional[str] = None
        self.is_initialized = False
        self.requires_otp = False

        self._authenticating = False
        self._epoch = 0
        self._listeners: List[Listener] = []
        self._background: Set[asyncio.Task] = set()

    # State access

    @property
    def phase(self) -> SessionPhase:
        if self._authenticating:
            return SessionPhase.AUTHENTICATING
        if self.is_authenticated:
            return SessionPhase.AUTHENTICATED
        if not self.is_initialized:
            return SessionPhase.UNKNOWN
        return SessionPhase.ANONYMOUS

    @property
    def state(self) -> SessionState:
        return SessionState(
            user=self.user,
            token=self.token,
            is_authenticated=self.is_authenticated,
            is_loading=self.is_loading,
            error=self.error,
            is_initialized=self.is_initialized,
            requires_otp=self.requires_otp,
            phase=self.phase
        )

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            user=self.user,
            token=self.token,
            is_authenticated=self.is_authenticated,
            is_initialized=self.is_initialized
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a state listener

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def is_admin(self) -> bool:
        return self.user is not None and self.user.role == "admin"

    def is_moderator(self) -> bool:
        return self.user is not None and self.user.role in ("moderator", "admin")

    # Lifecycle operations

    async def initialize(self) -> None:
        """
        Restore the session from a persisted token.
        Always ends with ``is_initialized`` set, whatever the gateway says.
        Callers check ``is_initialized`` before calling; this does not re-guard.
        """
        logger.info("Initializing session")
        stored_token = self.store.get_token()

        if not stored_token:
            logger.info("No stored token found")
            self._set(is_initialized=True)
            return

        epoch = self._epoch
        snapshot = self.store.load_snapshot()
        cached_user = snapshot.user if snapshot and snapshot.token == stored_token else None

        logger.info(f"Found stored token {mask_token(stored_token)}, restoring session")
        self._authenticating = True
        self._set(token=stored_token, user=cached_user, is_authenticated=True, is_loading=True)

        response = None
        try:
            response = await self.gateway.get_profile()
        except Exception as e:
            logger.error(f"Error restoring session: {str(e)}")

        if not self._is_current(epoch):
            logger.info("Session changed during restore, keeping newer state")
            self._set(is_initialized=True)
            return

        self._authenticating = False
        if response is not None and response.success and response.data:
            self._set(user=response.data, is_loading=False, is_initialized=True)
            logger.info(f"Session restored for user {response.data.id}")
            return

        logger.info("Stored token was rejected, clearing session")
        self._advance()
        self._set(
            user=None,
            token=None,
            is_authenticated=False,
            is_loading=False,
            is_initialized=True
        )
        self._discard_stored_token()

    async def login(self, email: Optional[str], password: Optional[str] = None,
                    phone_number: Optional[str] = None) -> bool:
        """
        Log in with password credentials, or hand off to OTP verification.

        Returns:
            True when a token was granted. False on failure, and also when the
            gateway asks for an OTP step (``requires_otp`` is set, ``error`` is not).
        """
        logger.info(f"Login attempt started for {email or phone_number}")
        epoch = self._epoch
        self._authenticating = True
        self._set(is_loading=True, error=None, requires_otp=False)

        try:
            response = await self.gateway.login(
                email=email or None, password=password, phone_number=phone_number
            )
        except Exception as e:
            logger.error(f"Login error: {str(e)}")
            return self._fail(epoch, "Login failed")

        if not self._is_current(epoch):
            logger.info("Discarding stale login response")
            return False

        if response is not None and response.success and response.data:
            if response.data.token and response.data.user:
                self._commit_grant(response.data)
                logger.info(f"Login successful for user {response.data.user.id}")
                return True
            if response.data.otp_required:
                logger.info("Login requires OTP verification")
                self._authenticating = False
                self._set(is_loading=False, requires_otp=True)
                return False

        logger.warning(f"Login failed: {_error_message(response, 'no token granted')}")
        return self._fail(epoch, _error_message(response, "Login failed"))

    async def register(self, email: Optional[str], phone_number: Optional[str] = None,
                       password: Optional[str] = None) -> bool:
        """
        Register a new account. Does not authenticate: the caller moves on
        to OTP verification using the submitted email or phone number.
        """
        logger.info(f"Registration started for {email or phone_number}")
        epoch = self._epoch
        self._set(is_loading=True, error=None, requires_otp=False)

        try:
            response = await self.gateway.register(
                email=email or None, phone_number=phone_number, password=password
            )
        except Exception as e:
            logger.error(f"Registration error: {str(e)}")
            return self._fail(epoch, "Registration failed", authenticating=False)

        if not self._is_current(epoch):
            logger.info("Discarding stale registration response")
            return False

        if response is not None and response.success:
            self._set(is_loading=False, error=None)
            return True

        return self._fail(epoch, _error_message(response, "Registration failed"), authenticating=False)

    async def verify_otp(self, email: Optional[str], phone_number: Optional[str], code: str) -> bool:
        """
        Verify an OTP code sent to ``email`` or ``phone_number``.
        On success the session is authenticated exactly like a login.
        """
        logger.info(f"OTP verification started for {email or phone_number}")
        epoch = self._epoch
        self._authenticating = True
        self._set(is_loading=True, error=None)

        try:
            response = await self.gateway.verify_otp(otp=code, email=email, phone_number=phone_number)
        except Exception as e:
            logger.error(f"OTP verification error: {str(e)}")
            return self._fail(epoch, "OTP verification failed")

        if not self._is_current(epoch):
            logger.info("Discarding stale OTP verification response")
            return False

        granted = response.data if response is not None and response.success else None
        if granted and granted.token and granted.user:
            self._commit_grant(granted)
            logger.info(f"OTP verified for user {response.data.user.id}")
            return True

        return self._fail(epoch, _error_message(response, "OTP verification failed"))

    def logout(self) -> None:
        """
        End the session locally right away. The gateway invalidation runs as
        a detached task whose outcome is only logged.
        """
        token = self.token
        logger.info("Logging out")
        self._advance()
        self._authenticating = False
        self._discard_stored_token()
        self._set(
            user=None,
            token=None,
            is_authenticated=False,
            is_loading=False,
            error=None,
            requires_otp=False
        )
        self._spawn(self._invalidate_remote(token))

    async def refresh_token(self) -> bool:
        """
        Exchange the current token for a fresh one.
        Any failure ends the session through logout().
        """
        token = self.token
        if not token:
            return False

        epoch = self._epoch
        response = None
        try:
            response = await self.gateway.refresh_token(token)
        except Exception as e:
            logger.error(f"Token refresh error: {str(e)}")

        if not self._is_current(epoch):
            logger.info("Discarding stale token refresh response")
            return False

        if response is not None and response.success and response.data and response.data.token:
            new_token = response.data.token
            self._advance()
            self._set(user=response.data.user or self.user, token=new_token, is_authenticated=True)
            self._persist_token(new_token)
            logger.info(f"Token refreshed: {mask_token(new_token)}")
            return True

        logger.warning("Token refresh failed, ending session")
        self.logout()
        return False

    async def get_profile(self) -> None:
        """Best-effort refresh of ``user``; failures leave the session untouched"""
        epoch = self._epoch
        self._set(is_loading=True)

        response = None
        try:
            response = await self.gateway.get_profile()
        except Exception as e:
            logger.error(f"Error fetching profile: {str(e)}")

        if not self._is_current(epoch):
            return

        if response is not None and response.success and response.data:
            self._set(user=response.data, is_loading=False)
        else:
            logger.warning(f"Profile fetch failed: {_error_message(response, 'unknown error')}")
            self._set(is_loading=False)

    async def update_profile(self, **fields: Any) -> bool:
        """Update profile fields (name, phone_number, profile_image)"""
        epoch = self._epoch
        self._set(is_loading=True, error=None)

        try:
            response = await self.gateway.update_profile(**fields)
        except Exception as e:
            logger.error(f"Profile update error: {str(e)}")
            return self._fail(epoch, "Profile update failed", authenticating=False)

        if not self._is_current(epoch):
            return False

        if response is not None and response.success and response.data:
            self._set(user=response.data, is_loading=False)
            return True

        return self._fail(epoch, _error_message(response, "Profile update failed"), authenticating=False)

    async def request_password_reset(self, email: str) -> bool:
        epoch = self._epoch
        self._set(is_loading=True, error=None)

        try:
            response = await self.gateway.request_password_reset(email)
        except Exception as e:
            logger.error(f"Password reset request error: {str(e)}")
            return self._fail(epoch, "Password reset request failed", authenticating=False)

        if not self._is_current(epoch):
            return False

        if response is not None and response.success:
            self._set(is_loading=False)
            return True

        return self._fail(epoch, _error_message(response, "Password reset request failed"),
                          authenticating=False)

    async def reset_password(self, token: str, new_password: str) -> bool:
        epoch = self._epoch
        self._set(is_loading=True, error=None)

        try:
            response = await self.gateway.reset_password(token, new_password)
        except Exception as e:
            logger.error(f"Password reset error: {str(e)}")
            return self._fail(epoch, "Password reset failed", authenticating=False)

        if not self._is_current(epoch):
            return False

        if response is not None and response.success:
            self._set(is_loading=False)
            return True

        return self._fail(epoch, _error_message(response, "Password reset failed"), authenticating=False)

    async def drain(self) -> None:
        """Wait for detached gateway calls (logout invalidations) to settle"""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # Setters

    def set_user(self, user: User) -> None:
        self._set(user=user)

    def set_token(self, token: str) -> None:
        self._set(token=token, is_authenticated=True)

    def set_error(self, error: Optional[str]) -> None:
        self._set(error=error)

    def clear_error(self) -> None:
        self._set(error=None)

    def set_loading(self, loading: bool) -> None:
        self._set(is_loading=loading)

    # Internals

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    def _advance(self) -> None:
        self._epoch += 1

    def _commit_grant(self, payload: AuthPayload) -> None:
        self._advance()
        self._authenticating = False
        self._set(
            user=payload.user,
            token=payload.token,
            is_authenticated=True,
            is_loading=False,
            error=None,
            requires_otp=False
        )
        self._persist_token(payload.token)

    def _fail(self, epoch: int, message: str, authenticating: bool = True) -> bool:
        if not self._is_current(epoch):
            return False
        if authenticating:
            self._authenticating = False
        self._set(error=message, is_loading=False)
        return False

    def _set(self, **changes: Any) -> None:
        for name, value in changes.items():
            if name == "is_initialized" and not value:
                continue  # never reverts
            setattr(self, name, value)

        if PERSISTED_FIELDS.intersection(changes):
            self._persist_snapshot()
        self._notify()

    def _persist_snapshot(self) -> None:
        try:
            self.store.save_snapshot(self.snapshot())
        except Exception as e:
            logger.error(f"Error persisting session snapshot: {str(e)}")

    def _persist_token(self, token: str) -> None:
        try:
            self.store.save_token(token)
        except Exception as e:
            logger.error(f"Error saving token: {str(e)}")

    def _discard_stored_token(self) -> None:
        try:
            self.store.remove_token()
        except Exception as e:
            logger.error(f"Error removing stored token: {str(e)}")

    def _notify(self) -> None:
        if not self._listeners:
            return
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session listener failed")

    def _spawn(self, coro) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop, skipping server-side logout")
            return
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _invalidate_remote(self, token: Optional[str]) -> None:
        try:
            response = await self.gateway.logout(token=token)
        except Exception as e:
            logger.error(f"Server-side logout failed: {str(e)}")
            return
        if response is not None and not response.success:
            logger.warning(f"Server-side logout rejected: {_error_message(response, 'unknown error')}")
