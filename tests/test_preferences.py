"""Test consent preferences and the preferences event bus."""

from consentkit.common.events import ConsentEventBus
from consentkit.common.preferences import CategoryConsent, ConsentPreferences


def test_duplicate_keys_keep_first_position_last_value():
    preferences = ConsentPreferences(
        is_customised=True,
        cookie_options=[
            CategoryConsent(gtm_key="a", is_enabled=True),
            CategoryConsent(gtm_key="b", is_enabled=True),
            CategoryConsent(gtm_key="a", is_enabled=False),
        ],
    )

    assert [o.gtm_key for o in preferences.cookie_options] == ["a", "b"]
    assert preferences.is_category_enabled("a") is False


def test_decodes_stored_shape():
    preferences = ConsentPreferences.model_validate({
        "isCustomised": False,
        "cookieOptions": [{"gtm_key": "a", "isEnabled": True}],
    })

    assert preferences.is_customised is False
    assert preferences.as_mapping() == {"a": True}
    assert preferences.to_storage() == {
        "isCustomised": False,
        "cookieOptions": [{"gtm_key": "a", "isEnabled": True}],
    }


def test_with_category_returns_customised_copy():
    original = ConsentPreferences.from_mapping({"a": True}, is_customised=False)

    updated = original.with_category("b", False).with_category("a", False)

    assert original.as_mapping() == {"a": True}
    assert updated.as_mapping() == {"a": False, "b": False}
    assert updated.is_customised is True


def test_enabled_keys_and_unknown_category():
    preferences = ConsentPreferences.from_mapping({"a": True, "b": False, "c": True})

    assert preferences.enabled_keys() == ["a", "c"]
    assert preferences.is_category_enabled("zzz") is False


def test_event_bus_publish_and_unsubscribe():
    bus = ConsentEventBus()
    received = []
    unsubscribe = bus.subscribe(received.append)
    preferences = ConsentPreferences.from_mapping({"a": True})

    assert bus.publish(preferences) == 1
    assert received == [preferences]

    unsubscribe()
    unsubscribe()
    assert len(bus) == 0
    assert bus.publish(preferences) == 0


def test_event_bus_isolates_failing_listener():
    bus = ConsentEventBus()
    received = []

    def broken(preferences):
        raise ValueError("boom")

    bus.subscribe(broken)
    bus.subscribe(received.append)

    assert bus.publish(ConsentPreferences.from_mapping({})) == 1
    assert len(received) == 1
