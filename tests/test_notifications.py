"""
Tests for push payload handling and notification click routing.
"""
import json

import pytest

from offline_engine.notifications import NOTIFICATION_CLICK

from conftest import url


def push(engine, payload):
    raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return engine.push(raw)


# =============================================================================
# Push
# =============================================================================

def test_unparsable_payload_uses_every_default(engine, settings):
    notification = push(engine, b"not json {")
    assert notification.title == settings.notification_title
    assert notification.options.body == settings.notification_body
    assert notification.options.icon == settings.notification_icon
    assert notification.options.badge == settings.notification_badge
    assert notification.options.tag == settings.notification_tag
    assert notification.data["url"] == "/"
    assert notification.data["timestamp"].endswith("Z")


def test_empty_push_uses_defaults(engine, settings):
    notification = engine.push(None)
    assert notification.title == settings.notification_title


@pytest.mark.parametrize("payload", [b"[1, 2]", b'"hello"', b'{"title": 5}'])
def test_non_object_or_ill_typed_payload_uses_defaults(engine, settings, payload):
    notification = push(engine, payload)
    assert notification.title == settings.notification_title
    assert notification.options.body == settings.notification_body


def test_partial_payload_overrides_only_supplied_fields(engine, settings):
    notification = push(engine, {"title": "Rain alert", "body": "Bring an umbrella"})
    assert notification.title == "Rain alert"
    assert notification.options.body == "Bring an umbrella"
    assert notification.options.icon == settings.notification_icon
    assert notification.options.tag == settings.notification_tag
    assert notification.data["url"] == "/"


def test_ill_typed_field_falls_back_alone(engine, settings):
    notification = push(engine, {"title": "Hi", "badge": 5, "data": "nope"})
    assert notification.title == "Hi"
    assert notification.options.badge == settings.notification_badge
    assert notification.data["url"] == "/"


def test_data_field_is_replaced_as_a_whole(engine):
    notification = push(engine, {"data": {"url": "/weather"}})
    assert notification.data == {"url": "/weather"}


def test_unrecognized_fields_are_ignored(engine):
    notification = push(engine, {"title": "Hi", "priority": "high"})
    assert notification.title == "Hi"
    assert "priority" not in notification.to_dict()


def test_display_options(engine, settings):
    notification = push(engine, {})
    options = notification.to_dict()
    assert options["vibrate"] == settings.vibrate_pattern
    assert [a["action"] for a in options["actions"]] == ["open", "close"]
    assert options["requireInteraction"] is True
    assert options["silent"] is False


# =============================================================================
# Click
# =============================================================================

def test_click_focuses_window_containing_target_url(engine, clients):
    other = clients.add(url("/settings"))
    target = clients.add(url("/weather?city=oslo"))
    notification = push(engine, {"data": {"url": "/weather"}})

    client = engine.notification_click(notification)

    assert notification.closed is True
    assert client is target
    assert target.focused is True
    assert other.focused is False


def test_click_includes_uncontrolled_windows(engine, clients):
    page = clients.add(url("/"), controlled=False)
    notification = push(engine, {})
    assert engine.notification_click(notification) is page


def test_click_opens_new_window_when_no_match(engine, clients):
    clients.add(url("/settings"))
    notification = push(engine, {"data": {"url": "/inbox"}})

    client = engine.notification_click(notification, action="open")

    assert client.url == "/inbox"
    assert len(clients.match_all(include_uncontrolled=True)) == 2


def test_click_posts_message_to_client(engine, clients):
    page = clients.add(url("/weather"))
    notification = push(engine, {"data": {"url": "/weather", "id": 7}})

    engine.notification_click(notification)

    assert len(page.messages) == 1
    message = page.messages[0]
    assert message["type"] == NOTIFICATION_CLICK
    assert message["data"] == {"url": "/weather", "id": 7}
    assert "timestamp" in message


def test_close_action_behaves_like_click(engine, clients):
    page = clients.add(url("/"))
    notification = push(engine, {})
    assert engine.notification_click(notification, action="close") is page
    assert notification.closed is True


def test_missing_data_url_defaults_to_root(engine, clients):
    page = clients.add(url("/"))
    notification = push(engine, {"data": None})
    assert engine.notification_click(notification) is page


def test_window_open_failure_does_not_raise(engine, clients):
    clients.allow_open = False
    notification = push(engine, {"data": {"url": "/nowhere"}})
    assert engine.notification_click(notification) is None
    assert notification.closed is True


def test_post_message_failure_does_not_raise(engine, clients):
    page = clients.add(url("/"))

    def broken(message):
        raise RuntimeError("window went away")

    page.post_message = broken
    notification = push(engine, {})
    assert engine.notification_click(notification) is page
