"""
Tests for the AuthContext session state machine.

Covers startup, first-event suppression, profile resolution (including
lazy creation and fallbacks), sign-in/up/out and the visibility valve.
"""

import pytest

from conftest import api_error, make_session, make_user
from reembolso.auth.context import AuthContext
from reembolso.schemas.profile import Role


def _profile_reads(client) -> int:
    return client.count("users", "select")


class TestStartup:

    @pytest.mark.asyncio
    async def test_no_session_goes_ready_without_identity(self, fake_client):
        auth = AuthContext(fake_client)

        await auth.start()

        assert auth.session is None
        assert auth.user is None
        assert auth.is_loading is False
        assert auth.user_roles == ()
        assert _profile_reads(fake_client) == 0

    @pytest.mark.asyncio
    async def test_existing_session_resolves_profile(self, fake_client, signed_in_user):
        fake_client.tables["users"] = [
            {"id": "user-1", "name": "Ana", "email": "ana@example.com", "roles": ["approver"]}
        ]
        auth = AuthContext(fake_client)

        await auth.start()

        assert auth.user.id == "user-1"
        assert auth.profile.name == "Ana"
        assert auth.user_roles == (Role.APPROVER,)
        assert auth.is_admin is False
        assert auth.is_loading is False

    @pytest.mark.asyncio
    async def test_start_subscribes_and_close_unsubscribes(self, fake_client):
        auth = AuthContext(fake_client)

        await auth.start()
        assert len(fake_client.auth.subscriptions) == 1

        await auth.close()
        assert fake_client.auth.subscriptions == []


class TestAuthEvents:

    @pytest.mark.asyncio
    async def test_first_event_for_startup_user_is_discarded(self, fake_client, signed_in_user):
        fake_client.tables["users"] = [{"id": "user-1", "roles": ["submitter"]}]
        auth = AuthContext(fake_client)
        await auth.start()
        reads_after_start = _profile_reads(fake_client)
        refreshed = make_session(signed_in_user)

        fake_client.auth.emit("TOKEN_REFRESHED", refreshed)
        await auth.close()

        assert _profile_reads(fake_client) == reads_after_start == 1
        assert auth.state.initialized is True
        assert auth.session is refreshed
        assert auth.user_roles == (Role.SUBMITTER,)

    @pytest.mark.asyncio
    async def test_replayed_initial_session_is_discarded(self, fake_client, signed_in_user):
        fake_client.tables["users"] = [{"id": "user-1", "roles": ["submitter"]}]
        auth = AuthContext(fake_client)
        await auth.start()

        await auth.handle_auth_event("INITIAL_SESSION", fake_client.auth.session)

        assert _profile_reads(fake_client) == 1
        assert auth.state.initialized is True

    @pytest.mark.asyncio
    async def test_first_sign_in_after_empty_startup_is_applied(self, fake_client):
        user = make_user(user_id="user-2", email="bo@example.com")
        fake_client.auth.accounts["bo@example.com"] = user
        fake_client.tables["users"] = [{"id": "user-2", "roles": ["deleter"]}]
        auth = AuthContext(fake_client)
        await auth.start()

        result = await auth.sign_in("bo@example.com", "secret")
        await auth.wait_for_events()

        assert result.ok
        assert auth.user is not None
        assert auth.user.id == "user-2"
        assert auth.has_role(Role.DELETER)
        assert not auth.has_role(Role.APPROVER)
        assert auth.state.initialized is True

    @pytest.mark.asyncio
    async def test_later_events_switch_identity(self, fake_client):
        first = make_user(user_id="user-2", email="bo@example.com")
        second = make_user(user_id="user-3", email="cy@example.com")
        fake_client.auth.accounts["bo@example.com"] = first
        fake_client.tables["users"] = [
            {"id": "user-2", "roles": ["deleter"]},
            {"id": "user-3", "roles": ["approver"]},
        ]
        auth = AuthContext(fake_client)
        await auth.start()

        await auth.sign_in("bo@example.com", "secret")
        fake_client.auth.emit("SIGNED_IN", make_session(second))
        await auth.close()

        assert auth.user.id == "user-3"
        assert auth.user_roles == (Role.APPROVER,)

    @pytest.mark.asyncio
    async def test_sign_out_event_clears_identity(self, fake_client, signed_in_user):
        fake_client.tables["users"] = [{"id": "user-1", "roles": ["admin"]}]
        auth = AuthContext(fake_client)
        await auth.start()

        fake_client.auth.emit("SIGNED_OUT", None)
        await auth.wait_for_events()

        assert auth.session is None
        assert auth.profile is None
        assert auth.user_roles == ()
        assert auth.is_admin is False
        assert auth.is_loading is False


class TestResolveProfile:

    @pytest.mark.asyncio
    async def test_missing_profile_is_created_from_identity(self, fake_client, signed_in_user):
        auth = AuthContext(fake_client)

        await auth.start()

        rows = fake_client.tables["users"]
        assert len(rows) == 1
        assert rows[0] == {"id": "user-1", "name": "Ana", "email": "ana@example.com", "roles": ["user"]}
        assert auth.profile is not None
        assert auth.user_roles == (Role.USER,)

    @pytest.mark.asyncio
    async def test_name_falls_back_to_email(self, fake_client):
        user = make_user(user_id="user-3", email="nameless@example.com")
        fake_client.auth.session = make_session(user)
        auth = AuthContext(fake_client)

        await auth.start()

        assert fake_client.tables["users"][0]["name"] == "nameless@example.com"

    @pytest.mark.asyncio
    async def test_existing_profile_never_inserts_again(self, fake_client, signed_in_user):
        fake_client.tables["users"] = [{"id": "user-1", "roles": ["approver"]}]
        auth = AuthContext(fake_client)
        await auth.start()

        await auth.resolve_profile("user-1")
        await auth.resolve_profile("user-1")

        assert fake_client.count("users", "insert") == 0
        assert len(fake_client.tables["users"]) == 1

    @pytest.mark.asyncio
    async def test_insert_failure_falls_back_to_default_role(self, fake_client, signed_in_user):
        fake_client.failures[("users", "insert")] = api_error("42501", "permission denied")
        auth = AuthContext(fake_client)

        await auth.start()

        assert auth.profile is None
        assert auth.user_roles == (Role.USER,)
        assert auth.is_loading is False

    @pytest.mark.asyncio
    async def test_other_read_error_falls_back_to_default_role(self, fake_client, signed_in_user):
        fake_client.failures[("users", "select")] = api_error("500", "connection reset")
        auth = AuthContext(fake_client)

        await auth.start()

        assert auth.profile is None
        assert auth.user_roles == (Role.USER,)
        assert fake_client.count("users", "insert") == 0
        assert auth.is_loading is False

    @pytest.mark.asyncio
    async def test_legacy_singular_role_is_used(self, fake_client, signed_in_user):
        fake_client.tables["users"] = [{"id": "user-1", "role": "admin", "roles": None}]
        auth = AuthContext(fake_client)

        await auth.start()

        assert auth.is_admin is True
        assert auth.has_role(Role.REJECTOR)


class TestActions:

    @pytest.mark.asyncio
    async def test_sign_in_state_arrives_through_auth_event(self, fake_client):
        auth = AuthContext(fake_client)
        await auth.start()

        result = await auth.sign_in("ana@example.com", "secret")

        assert result.ok
        assert result.data.user.email == "ana@example.com"
        assert auth.session is None

        await auth.close()

        assert auth.session is result.data.session
        assert auth.user.email == "ana@example.com"

    @pytest.mark.asyncio
    async def test_sign_in_error_is_returned(self, fake_client):
        fake_client.auth.sign_in_error = RuntimeError("Invalid login credentials")
        auth = AuthContext(fake_client)

        result = await auth.sign_in("ana@example.com", "wrong")

        assert result.data is None
        assert "Invalid login credentials" in result.error.message

    @pytest.mark.asyncio
    async def test_sign_up_inserts_profile_with_requested_role(self, fake_client):
        auth = AuthContext(fake_client)

        result = await auth.sign_up("new@example.com", "secret1", "Nina", Role.APPROVER)

        assert result.ok
        assert fake_client.auth.sign_up_calls[0]["options"] == {"data": {"name": "Nina"}}
        row = fake_client.tables["users"][0]
        assert row["id"] == result.data.user.id
        assert row["name"] == "Nina"
        assert row["roles"] == ["approver"]

    @pytest.mark.asyncio
    async def test_sign_up_overwrites_roles_of_trigger_created_profile(self, fake_client):
        auth = AuthContext(fake_client)

        # Simulate the database trigger creating the row as soon as the user exists
        original_sign_up = fake_client.auth.sign_up

        async def sign_up_with_trigger(credentials):
            response = await original_sign_up(credentials)
            fake_client.tables["users"] = [{"id": response.user.id, "roles": ["user"]}]
            return response

        fake_client.auth.sign_up = sign_up_with_trigger

        await auth.sign_up("new@example.com", "secret1", "Nina", Role.REJECTOR)

        assert len(fake_client.tables["users"]) == 1
        assert fake_client.tables["users"][0]["roles"] == ["rejector"]

    @pytest.mark.asyncio
    async def test_sign_up_profile_errors_are_not_surfaced(self, fake_client):
        fake_client.failures[("users", "insert")] = api_error("42501", "permission denied")
        auth = AuthContext(fake_client)

        result = await auth.sign_up("new@example.com", "secret1", "Nina", Role.SUBMITTER)

        assert result.ok
        assert result.data.user.email == "new@example.com"

    @pytest.mark.asyncio
    async def test_sign_up_error_returns_error_and_no_data(self, fake_client):
        fake_client.auth.sign_up_error = RuntimeError("User already registered")
        auth = AuthContext(fake_client)

        result = await auth.sign_up("dup@example.com", "secret1", "Dup", Role.SUBMITTER)

        assert result.data is None
        assert result.error is not None
        assert fake_client.count("users", "select") == 0

    @pytest.mark.asyncio
    async def test_sign_out_clears_everything(self, fake_client, signed_in_user):
        fake_client.tables["users"] = [{"id": "user-1", "roles": ["admin"]}]
        auth = AuthContext(fake_client)
        await auth.start()

        await auth.sign_out()
        await auth.close()

        assert fake_client.auth.sign_out_calls == 1
        assert auth.session is None
        assert auth.user is None
        assert auth.profile is None
        assert auth.user_roles == ()
        assert auth.is_admin is False
        assert auth.is_loading is False

    @pytest.mark.asyncio
    async def test_sign_out_clears_state_even_if_backend_fails(self, fake_client, signed_in_user):
        fake_client.auth.sign_out_error = RuntimeError("network down")
        auth = AuthContext(fake_client)
        await auth.start()

        await auth.sign_out()

        assert auth.session is None
        assert auth.user_roles == ()


class TestVisibility:

    @pytest.mark.asyncio
    async def test_visible_forces_loading_off(self, fake_client, signed_in_user):
        auth = AuthContext(fake_client)
        assert auth.is_loading is True

        auth.on_visibility_change(True)

        assert auth.is_loading is False
        assert auth.session is None

    def test_hidden_does_nothing(self, fake_client):
        auth = AuthContext(fake_client)

        auth.on_visibility_change(False)

        assert auth.is_loading is True
