"""Chat directory: private-chat uniqueness, group creation, membership, per-viewer lists."""
import time

import pytest


def _online_none(identity_id):
    return False


def test_create_private_is_idempotent_in_both_directions(db, make_identity):
    from acto.core.services.chat_directory import ChatDirectory

    alice = make_identity("alice")
    bob = make_identity("bob")

    chat, created = ChatDirectory.create_private(db, alice.id, "bob")
    assert created is True
    assert chat.kind == "private"
    assert chat.participant_ids == [alice.id, bob.id]
    assert chat.admin_ids == []
    assert chat.owner_id is None

    again, created_again = ChatDirectory.create_private(db, alice.id, "BOB")
    reverse, created_reverse = ChatDirectory.create_private(db, bob.id, "alice")
    assert (again.id, created_again) == (chat.id, False)
    assert (reverse.id, created_reverse) == (chat.id, False)


def test_create_private_with_self_rejected(db, make_identity):
    from acto.core.errors import InvalidArgument
    from acto.core.services.chat_directory import ChatDirectory

    alice = make_identity("alice")
    with pytest.raises(InvalidArgument):
        ChatDirectory.create_private(db, alice.id, "Alice")


def test_create_private_unknown_handle_not_found(db, make_identity):
    from acto.core.errors import NotFound
    from acto.core.services.chat_directory import ChatDirectory

    alice = make_identity("alice")
    with pytest.raises(NotFound):
        ChatDirectory.create_private(db, alice.id, "ghost")


def test_create_group_owner_is_admin_and_announcement_is_first_message(db, make_identity):
    from acto.core.memory.repository import MessageRepository
    from acto.core.services.chat_directory import DEFAULT_GROUP_AVATAR, ChatDirectory

    alice = make_identity("alice")
    group = ChatDirectory.create_group(db, alice.id, "  Team  ", "weekly sync")

    assert group.kind == "group"
    assert group.name == "Team"
    assert group.description == "weekly sync"
    assert group.avatar == DEFAULT_GROUP_AVATAR
    assert group.owner_id == alice.id
    assert group.participant_ids == [alice.id]
    assert group.admin_ids == [alice.id]

    history = MessageRepository.get_range(db, group.id, 0, 10)
    assert len(history) == 1
    assert history[0].kind == "system"
    assert history[0].sender_id == "system"
    assert history[0].content == 'Group "Team" created'


def test_create_group_requires_name(db, make_identity):
    from acto.core.errors import InvalidArgument
    from acto.core.services.chat_directory import ChatDirectory

    alice = make_identity("alice")
    with pytest.raises(InvalidArgument):
        ChatDirectory.create_group(db, alice.id, "   ")


def test_assert_member_forbids_outsiders_and_unknown_chats(db, make_identity):
    from acto.core.errors import Forbidden
    from acto.core.services.chat_directory import ChatDirectory

    alice = make_identity("alice")
    make_identity("bob")
    carol = make_identity("carol")
    chat, _ = ChatDirectory.create_private(db, alice.id, "bob")

    ChatDirectory.assert_member(db, chat.id, alice.id)
    with pytest.raises(Forbidden):
        ChatDirectory.assert_member(db, chat.id, carol.id)
    with pytest.raises(Forbidden):
        ChatDirectory.assert_member(db, "no-such-chat", alice.id)


def test_list_orders_by_last_activity(db, make_identity):
    from acto.core.services.chat_directory import ChatDirectory
    from acto.core.services.message_log import MessageLog

    alice = make_identity("alice")
    make_identity("bob")
    make_identity("carol")

    with_bob, _ = ChatDirectory.create_private(db, alice.id, "bob")
    time.sleep(0.002)
    with_carol, _ = ChatDirectory.create_private(db, alice.id, "carol")
    time.sleep(0.002)
    group = ChatDirectory.create_group(db, alice.id, "Team")

    listed = [c.id for c in ChatDirectory.list_for_identity(db, alice.id, _online_none)]
    assert listed == [group.id, with_carol.id, with_bob.id]

    time.sleep(0.002)
    MessageLog.append(db, with_bob.id, alice.id, "ping")
    listed = ChatDirectory.list_for_identity(db, alice.id, _online_none)
    assert [c.id for c in listed] == [with_bob.id, group.id, with_carol.id]
    assert listed[0].last_message.content == "ping"
    assert listed[1].last_message.kind == "system"
    assert listed[2].last_message is None


def test_list_excludes_chats_without_the_identity(db, make_identity):
    from acto.core.services.chat_directory import ChatDirectory

    alice = make_identity("alice")
    bob = make_identity("bob")
    carol = make_identity("carol")
    ChatDirectory.create_private(db, alice.id, "bob")
    ChatDirectory.create_group(db, bob.id, "Bob's group")

    assert ChatDirectory.list_for_identity(db, carol.id, _online_none) == []
    assert len(ChatDirectory.list_for_identity(db, alice.id, _online_none)) == 1
    assert len(ChatDirectory.list_for_identity(db, bob.id, _online_none)) == 2


def test_private_chat_view_describes_the_other_participant(db, make_identity):
    from acto.core.services.chat_directory import ChatDirectory
    from acto.core.services.identity_store import IdentityStore

    alice = make_identity("alice", display_name="Alice")
    bob = make_identity("bob", display_name="Bob")
    IdentityStore.update_profile(db, bob.id, {"avatar": "🐻"})
    ChatDirectory.create_private(db, alice.id, "bob")

    online = {bob.id}
    [for_alice] = ChatDirectory.list_for_identity(db, alice.id, lambda i: i in online)
    assert for_alice.name == "Bob"
    assert for_alice.avatar == "🐻"
    assert for_alice.is_online is True
    assert for_alice.last_seen is not None
    assert for_alice.unread_count == 0

    [for_bob] = ChatDirectory.list_for_identity(db, bob.id, lambda i: i in online)
    assert for_bob.name == "Alice"
    assert for_bob.is_online is False


def test_group_view_is_the_same_for_every_viewer(db, make_identity):
    from acto.core.services.chat_directory import ChatDirectory

    alice = make_identity("alice")
    ChatDirectory.create_group(db, alice.id, "Team")

    [view] = ChatDirectory.list_for_identity(db, alice.id, _online_none)
    wire = view.to_wire()
    assert wire["name"] == "Team"
    assert wire["owner"] == alice.id
    assert wire["admins"] == [alice.id]
    assert wire["isOnline"] is None
    assert wire["unreadCount"] == 0
    assert wire["lastMessage"]["senderId"] == "system"
