"""Message log: append checks and backward paging."""
import pytest


@pytest.fixture
def pair(db, make_identity):
    """alice and bob with a private chat; carol is an outsider."""
    from acto.core.services.chat_directory import ChatDirectory

    alice = make_identity("alice")
    bob = make_identity("bob")
    carol = make_identity("carol")
    chat, _ = ChatDirectory.create_private(db, alice.id, "bob")
    return alice, bob, carol, chat


def test_page_bounds():
    from acto.core.services.message_log import page_bounds

    assert page_bounds(3, 1, 2) == (1, 3, True)
    assert page_bounds(3, 2, 2) == (0, 1, False)
    assert page_bounds(3, 3, 2) == (0, 0, False)
    assert page_bounds(4, 2, 2) == (0, 2, False)
    assert page_bounds(0, 1, 50) == (0, 0, False)


def test_paging_walks_backwards_in_chronological_pages(db, pair):
    from acto.core.services.message_log import MessageLog

    alice, bob, _, chat = pair
    for content in ("m1", "m2", "m3"):
        MessageLog.append(db, chat.id, alice.id, content)

    first = MessageLog.page(db, chat.id, bob.id, page=1, limit=2)
    assert [m.content for m in first.messages] == ["m2", "m3"]
    assert (first.total, first.has_more) == (3, True)

    second = MessageLog.page(db, chat.id, bob.id, page=2, limit=2)
    assert [m.content for m in second.messages] == ["m1"]
    assert second.has_more is False

    third = MessageLog.page(db, chat.id, bob.id, page=3, limit=2)
    assert third.messages == []
    assert third.has_more is False


def test_page_defaults_and_caps_limit(db, pair, monkeypatch):
    from acto.core.config import settings
    from acto.core.services.message_log import MessageLog

    alice, _, _, chat = pair
    MessageLog.append(db, chat.id, alice.id, "hello")

    assert MessageLog.page(db, chat.id, alice.id).limit == settings.default_page_limit
    monkeypatch.setattr(settings, "max_page_limit", 5)
    assert MessageLog.page(db, chat.id, alice.id, limit=500).limit == 5


def test_page_rejects_nonpositive_arguments(db, pair):
    from acto.core.errors import InvalidArgument
    from acto.core.services.message_log import MessageLog

    alice, _, _, chat = pair
    with pytest.raises(InvalidArgument):
        MessageLog.page(db, chat.id, alice.id, page=0)
    with pytest.raises(InvalidArgument):
        MessageLog.page(db, chat.id, alice.id, limit=0)


def test_outsider_is_forbidden_even_for_unknown_chats(db, pair):
    from acto.core.errors import Forbidden
    from acto.core.services.message_log import MessageLog

    _, _, carol, chat = pair
    with pytest.raises(Forbidden):
        MessageLog.append(db, chat.id, carol.id, "let me in")
    with pytest.raises(Forbidden):
        MessageLog.page(db, chat.id, carol.id)
    with pytest.raises(Forbidden):
        MessageLog.append(db, "no-such-chat", carol.id, "hello")


def test_append_records_sender_details(db, pair):
    from acto.core.schemas import MessageOut
    from acto.core.services.message_log import MessageLog

    alice, _, _, chat = pair
    message = MessageLog.append(db, chat.id, alice.id, "  hi bob  ")
    wire = MessageOut.from_message(message).to_wire()
    assert wire["content"] == "hi bob"
    assert wire["chatId"] == chat.id
    assert wire["senderId"] == alice.id
    assert wire["senderHandle"] == "alice"
    assert wire["senderDisplayName"] == "alice"
    assert wire["kind"] == "text"
    assert wire["edited"] is False
    assert wire["timestamp"]


def test_append_rejects_empty_content(db, pair):
    from acto.core.errors import InvalidArgument
    from acto.core.services.message_log import MessageLog

    alice, _, _, chat = pair
    with pytest.raises(InvalidArgument):
        MessageLog.append(db, chat.id, alice.id, "   ")


def test_clients_cannot_post_system_or_unknown_kinds(db, pair):
    from acto.core.errors import InvalidArgument
    from acto.core.services.message_log import MessageLog

    alice, _, _, chat = pair
    with pytest.raises(InvalidArgument):
        MessageLog.append(db, chat.id, alice.id, "fake", kind="system")
    with pytest.raises(InvalidArgument):
        MessageLog.append(db, chat.id, alice.id, "huh", kind="sticker")
    assert MessageLog.append(db, chat.id, alice.id, "photo.png", kind="image").kind == "image"


def test_system_sender_posts_anywhere_but_unknown_chats(db, pair):
    from acto.core.errors import NotFound
    from acto.core.services.message_log import MessageLog

    alice, _, _, chat = pair
    note = MessageLog.append(db, chat.id, "system", "Chat archived", kind="system")
    assert note.sender_display_name == "System"
    assert MessageLog.page(db, chat.id, alice.id).messages[-1].id == note.id

    with pytest.raises(NotFound):
        MessageLog.append(db, "no-such-chat", "system", "hello", kind="system")
