"""
Auth/session context for Reembolso.

AuthContext tracks the signed-in user, resolves their profile and roles, and
exposes role checks and auth actions. One instance is created by the
application's composition root (see main.py lifespan) and handed to
consumers; there is no module-level singleton.

State machine (AuthState):
- start(): subscribe to auth events, then load the current session.
  Session present -> resolve the profile; absent -> ready, no identity.
- first auth event after start(): marks `initialized`. It is discarded
  when it repeats what the startup session load resolved (INITIAL_SESSION,
  or the same user); any other first event is applied like a later one.
- later auth events: adopt the session/user; resolve the profile, or clear
  identity when the event carries no user.
- on_visibility_change(True): forces loading off, nothing else.
- sign_in / sign_up: never touch state; updates arrive via auth events.
- sign_out: clears all identity state, whatever the backend answers.
"""

import asyncio
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Set, Tuple

from supabase import AsyncClient

from reembolso.config import Settings, settings as default_settings
from reembolso.errors import BackendError
from reembolso.schemas.auth import AuthSnapshot
from reembolso.schemas.profile import DEFAULT_ROLES, Profile, Role, role_satisfied
from reembolso.services.profile_service import (
    create_profile,
    get_profile_row,
    set_profile_roles,
)
from reembolso.utils.logging import get_logger

logger = get_logger(__name__)

# Emitted by clients that replay the stored session on subscribe
INITIAL_SESSION_EVENT = "INITIAL_SESSION"


@dataclass(frozen=True)
class AuthState:
    """Immutable snapshot of the session state machine."""
    session: Optional[Any] = None
    user: Optional[Any] = None
    profile: Optional[Profile] = None
    roles: Tuple[Role, ...] = ()
    loading: bool = True
    # Set once the first auth event after startup has been seen
    initialized: bool = False

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    @property
    def user_roles(self) -> Tuple[Role, ...]:
        return self.roles


@dataclass
class AuthResult:
    """Raw outcome of a sign-in/sign-up call: data on success, error otherwise."""
    data: Optional[Any] = None
    error: Optional[BackendError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AuthContext:
    """
    Session/auth state holder bound to one Supabase client.

    Usage:
        >>> auth = AuthContext(client)
        >>> await auth.start()
        >>> if auth.has_role(Role.APPROVER):
        ...     ...
        >>> await auth.close()
    """

    def __init__(self, supabase_client: AsyncClient, settings: Optional[Settings] = None) -> None:
        self._client = supabase_client
        self._settings = settings or default_settings
        self._state = AuthState()
        self._subscription: Optional[Any] = None
        self._pending: Set["asyncio.Task[None]"] = set()

    # --- state accessors ---

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def session(self) -> Optional[Any]:
        return self._state.session

    @property
    def user(self) -> Optional[Any]:
        return self._state.user

    @property
    def profile(self) -> Optional[Profile]:
        return self._state.profile

    @property
    def is_loading(self) -> bool:
        return self._state.loading

    @property
    def is_admin(self) -> bool:
        return self._state.is_admin

    @property
    def user_roles(self) -> Tuple[Role, ...]:
        return self._state.user_roles

    def has_role(self, role: Role) -> bool:
        """True if admin, else True iff role is among the user's roles."""
        return role_satisfied(self._state.roles, role)

    def snapshot(self) -> AuthSnapshot:
        user = self._state.user
        return AuthSnapshot(
            signed_in=self._state.session is not None,
            user_id=getattr(user, "id", None),
            email=getattr(user, "email", None),
            profile=self._state.profile,
            roles=list(self._state.roles),
            is_admin=self._state.is_admin,
            loading=self._state.loading,
        )

    def _set(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)

    def _clear_identity(self) -> None:
        self._set(session=None, user=None, profile=None, roles=(), loading=False)

    # --- lifecycle ---

    async def start(self) -> None:
        """Subscribe to backend auth events and load the current session."""
        self._subscription = self._client.auth.on_auth_state_change(self._on_auth_state_change)

        session = await self._client.auth.get_session()
        user = getattr(session, "user", None) if session else None
        self._set(session=session, user=user)

        if user is not None:
            logger.info(f"Existing session found for user {user.id}")
            await self.resolve_profile(user.id)
        else:
            logger.info("No existing session")
            self._set(loading=False)

    async def close(self) -> None:
        """Unsubscribe from auth events and wait for in-flight handlers."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

        await self.wait_for_events()

    async def wait_for_events(self) -> None:
        """Wait until every auth event received so far has been applied."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def _on_auth_state_change(self, event: Any, session: Optional[Any]) -> None:
        # Backend callbacks are synchronous; run the handler on the loop
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"Auth event {event} received outside an event loop, ignored")
            return

        task = loop.create_task(self.handle_auth_event(event, session))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def handle_auth_event(self, event: Any, session: Optional[Any]) -> None:
        """
        Apply a pushed auth-state change (sign-in, sign-out, token refresh...).

        The first event after start() is dropped when the startup session
        load already resolved the same identity, so that identity's profile
        is not fetched twice. A fresh session on that first event is still
        adopted.
        """
        user = getattr(session, "user", None) if session else None

        if not self._state.initialized:
            self._set(initialized=True)
            if self._repeats_startup_identity(event, user):
                logger.debug(f"Discarding first auth event after startup: {event}")
                if session is not None and str(event) != INITIAL_SESSION_EVENT:
                    self._set(session=session)
                return

        logger.info(f"Auth state changed: {event}, user={getattr(user, 'id', None)}")

        self._set(session=session, user=user)

        if user is not None:
            await self.resolve_profile(user.id)
        else:
            self._set(profile=None, roles=(), loading=False)

    def _repeats_startup_identity(self, event: Any, user: Optional[Any]) -> bool:
        if str(event) == INITIAL_SESSION_EVENT:
            return True
        return getattr(user, "id", None) == getattr(self._state.user, "id", None)

    def on_visibility_change(self, visible: bool) -> None:
        """Recovery valve: a stalled fetch while hidden must not leave loading on."""
        if visible:
            self._set(loading=False)

    # --- profile resolution ---

    async def resolve_profile(self, user_id: str) -> Optional[Profile]:
        """
        Load (or lazily create) the user's profile and derive roles.

        - row missing: insert one from the live identity (name from metadata
          or email, roles ["user"]), re-read it and adopt it
        - any failure: no profile, roles ["user"]

        Loading is always cleared at the end.
        """
        self._set(loading=True)
        profile: Optional[Profile] = None

        try:
            logger.info(f"Fetching profile for user {user_id}")
            try:
                row = await get_profile_row(self._client, user_id)
            except BackendError as e:
                if not e.is_not_found:
                    raise
                logger.info(f"Profile not found for user {user_id}, creating it")
                row = await self._create_missing_profile(user_id)

            if row is not None:
                profile = Profile.model_validate(row)
        except Exception as e:
            logger.error(f"Failed to resolve profile for user {user_id}: {e}")
            profile = None
        finally:
            if profile is not None:
                self._set(profile=profile, roles=tuple(profile.roles), loading=False)
                logger.info(f"Profile resolved for user {user_id}: roles={[r.value for r in profile.roles]}")
            else:
                self._set(profile=None, roles=tuple(DEFAULT_ROLES), loading=False)

        return profile

    async def _create_missing_profile(self, user_id: str) -> Optional[dict]:
        response = await self._client.auth.get_user()
        auth_user = getattr(response, "user", None) if response else None
        if auth_user is None:
            logger.warning(f"No live auth identity while creating profile for {user_id}")
            return None

        metadata = getattr(auth_user, "user_metadata", None) or {}
        name = metadata.get("name") or auth_user.email

        try:
            await create_profile(self._client, user_id, name, auth_user.email, list(DEFAULT_ROLES))
            logger.info(f"Profile created for user {user_id}, fetching it again")
            return await get_profile_row(self._client, user_id)
        except BackendError as e:
            logger.error(f"Failed to create profile for user {user_id}: {e.message}")
            return None

    # --- actions ---

    async def sign_in(self, email: str, password: str) -> AuthResult:
        """Check credentials. State changes arrive later via auth events."""
        try:
            data = await self._client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except Exception as e:
            logger.warning(f"Sign-in failed: {e}")
            return AuthResult(data=None, error=BackendError.from_exception(e))

        return AuthResult(data=data, error=None)

    async def sign_up(self, email: str, password: str, name: str, role: Role) -> AuthResult:
        """
        Create the credential, then make sure a profile row with `role` exists.

        Profile reconciliation errors are logged only; sign-up still reports
        success.
        """
        try:
            data = await self._client.auth.sign_up(
                {
                    "email": email,
                    "password": password,
                    "options": {"data": {"name": name}},
                }
            )
        except Exception as e:
            logger.warning(f"Sign-up failed: {e}")
            return AuthResult(data=None, error=BackendError.from_exception(e))

        new_user = getattr(data, "user", None)
        if new_user is not None:
            await self._ensure_signup_profile(new_user.id, email, name, Role(role))

        return AuthResult(data=data, error=None)

    async def _ensure_signup_profile(self, user_id: str, email: str, name: str, role: Role) -> None:
        # Give the sign-up trigger a moment to create the row
        await asyncio.sleep(self._settings.PROFILE_TRIGGER_DELAY_SECONDS)

        try:
            try:
                await get_profile_row(self._client, user_id)
            except BackendError:
                await create_profile(self._client, user_id, name, email, [role])
            else:
                await set_profile_roles(self._client, user_id, [role])
        except Exception as e:
            logger.error(f"Failed to set up profile after sign-up for user {user_id}: {e}")

    async def sign_out(self) -> None:
        """Sign out on the backend and clear all local identity state."""
        try:
            await self._client.auth.sign_out()
        except Exception as e:
            logger.error(f"Backend sign-out failed, clearing local state anyway: {e}")
        finally:
            self._clear_identity()
