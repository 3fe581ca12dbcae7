"""Identity store: registration uniqueness, credential checks, profile edits, presence stamps, search."""
import asyncio
import time

import pytest


def test_register_duplicate_handle_any_case_conflicts(db, make_identity):
    from acto.core.errors import Conflict

    make_identity("alice")
    with pytest.raises(Conflict):
        make_identity("ALICE", contact_address="other@example.com")


def test_register_duplicate_contact_address_conflicts(db, make_identity):
    from acto.core.errors import Conflict

    make_identity("alice", contact_address="alice@example.com")
    with pytest.raises(Conflict):
        make_identity("alice2", contact_address="Alice@Example.com")


def test_register_stores_lowercase_and_defaults_display_name(db, make_identity):
    identity = make_identity("Dave", contact_address="Dave@Example.com")
    assert identity.handle == "dave"
    assert identity.contact_address == "dave@example.com"
    assert identity.display_name == "Dave"
    assert identity.credential_digest != "secret123"
    assert identity.is_online is False


def test_register_requires_fields(db):
    from acto.core.errors import InvalidArgument
    from acto.core.services.identity_store import IdentityStore

    with pytest.raises(InvalidArgument):
        asyncio.run(IdentityStore.create(db, handle="  ", contact_address="x@example.com", password="pw"))
    with pytest.raises(InvalidArgument):
        asyncio.run(IdentityStore.create(db, handle="x", contact_address="x@example.com", password=""))


def test_authenticate_is_case_insensitive(db, make_identity):
    from acto.core.services.identity_store import IdentityStore

    alice = make_identity("alice", password="pw-alice")
    found = asyncio.run(IdentityStore.authenticate(db, "ALICE", "pw-alice"))
    assert found.id == alice.id


def test_authenticate_does_not_reveal_unknown_handle(db, make_identity):
    from acto.core.errors import InvalidCredentials
    from acto.core.services.identity_store import IdentityStore

    make_identity("alice", password="pw-alice")
    with pytest.raises(InvalidCredentials) as wrong_password:
        asyncio.run(IdentityStore.authenticate(db, "alice", "nope"))
    with pytest.raises(InvalidCredentials) as unknown_handle:
        asyncio.run(IdentityStore.authenticate(db, "nobody", "nope"))
    assert wrong_password.value.message == unknown_handle.value.message


def test_get_unknown_identity_not_found(db):
    from acto.core.errors import NotFound
    from acto.core.services.identity_store import IdentityStore

    with pytest.raises(NotFound):
        IdentityStore.get(db, "missing")


def test_update_profile_applies_only_present_fields(db, make_identity):
    from acto.core.services.identity_store import IdentityStore

    alice = make_identity("alice", display_name="Alice")
    IdentityStore.update_profile(db, alice.id, {"status_line": "busy", "bio": "hello"})
    updated = IdentityStore.update_profile(db, alice.id, {"avatar": "🙂", "bio": None})
    assert updated.display_name == "Alice"
    assert updated.status_line == "busy"
    assert updated.avatar == "🙂"
    assert updated.bio == ""


def test_update_profile_never_touches_protected_fields(db, make_identity):
    from acto.core.services.identity_store import IdentityStore

    alice = make_identity("alice")
    digest = alice.credential_digest
    updated = IdentityStore.update_profile(
        db,
        alice.id,
        {"id": "hijack", "handle": "mallory", "contact_address": "m@example.com", "credential_digest": "x"},
    )
    assert updated.id == alice.id
    assert updated.handle == "alice"
    assert updated.contact_address == "alice@example.com"
    assert updated.credential_digest == digest


def test_set_presence_stamps_last_seen_both_ways(db, make_identity):
    from acto.core.services.identity_store import IdentityStore

    alice = make_identity("alice")
    first = alice.last_seen_at
    time.sleep(0.002)
    IdentityStore.set_presence(db, alice.id, True)
    online = IdentityStore.get(db, alice.id)
    assert online.is_online is True
    went_online_at = online.last_seen_at
    assert went_online_at > first
    time.sleep(0.002)
    IdentityStore.set_presence(db, alice.id, False)
    offline = IdentityStore.get(db, alice.id)
    assert offline.is_online is False
    assert offline.last_seen_at > went_online_at


def test_search_short_query_returns_nothing(db, make_identity):
    from acto.core.services.identity_store import IdentityStore

    alice = make_identity("alice")
    make_identity("bob")
    assert IdentityStore.search(db, alice.id, "b") == []
    assert IdentityStore.search(db, alice.id, "") == []
    assert IdentityStore.search(db, alice.id, None) == []


def test_search_matches_handle_or_display_name_and_excludes_requester(db, make_identity):
    from acto.core.services.identity_store import IdentityStore

    alice = make_identity("alice", display_name="Alice Johnson")
    make_identity("alicia")
    make_identity("bob", display_name="Bob Alison")
    make_identity("charlie")

    handles = {i.handle for i in IdentityStore.search(db, alice.id, "ALI")}
    assert handles == {"alicia", "bob"}


def test_search_caps_results(db, make_identity):
    from acto.core.services.identity_store import IdentityStore

    requester = make_identity("zed")
    for n in range(12):
        make_identity(f"user{n:02d}")
    assert len(IdentityStore.search(db, requester.id, "user")) == 10


def test_token_for_new_identity_verifies(db, make_identity):
    from acto.core.security.tokens import TokenManager

    carol = make_identity("carol")
    token = TokenManager.issue_for_identity(carol.id)
    assert TokenManager.identity_id_from_token(token) == carol.id
    assert TokenManager.identity_id_from_token(token + "x") is None
