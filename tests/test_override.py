import gc

import pytest

from appdependency.application import Application
from appdependency.override import DependencyOverride, preview


@pytest.fixture
def greeting(application):
    @application.provides()
    def make_greeting() -> str:
        return "hello"

    return "greeting"


def test_override_replaces_value_until_cancelled(greeting):
    token = Application.override(greeting, "bonjour")

    assert Application.resolve(greeting) == "bonjour"
    assert not token.has_cancelled

    token.cancel()

    assert token.has_cancelled
    assert Application.resolve(greeting) == "hello"


def test_override_keeps_scope(greeting):
    scope = Application.shared().value(greeting).scope

    with Application.override(greeting, "bonjour"):
        assert Application.shared().value(greeting).scope == scope


def test_override_creates_missing_dependency_first(application):
    calls = []

    @application.provides()
    def make_greeting() -> str:
        calls.append(1)
        return "hello"

    token = Application.override("greeting", "bonjour")
    token.cancel()

    assert calls == [1]
    assert Application.resolve("greeting") == "hello"
    assert calls == [1]


def test_cancelling_twice_is_harmless(greeting):
    first = Application.override(greeting, "bonjour")
    first.cancel()
    second = Application.override(greeting, "hola")
    first.cancel()

    assert Application.resolve(greeting) == "hola"
    second.cancel()


def test_nested_overrides_restore_in_reverse_order(greeting):
    a = Application.override(greeting, "bonjour")
    b = Application.override(greeting, "hola")
    assert Application.resolve(greeting) == "hola"

    b.cancel()
    assert Application.resolve(greeting) == "bonjour"

    a.cancel()
    assert Application.resolve(greeting) == "hello"


def test_out_of_order_cancel_never_restores_cancelled_value(greeting):
    a = Application.override(greeting, "bonjour")
    b = Application.override(greeting, "hola")
    c = Application.override(greeting, "ciao")

    a.cancel()
    assert Application.resolve(greeting) == "ciao"

    c.cancel()
    assert Application.resolve(greeting) == "hola"

    b.cancel()
    assert Application.resolve(greeting) == "hello"


def test_overrides_of_other_dependencies_are_independent(application, greeting):
    @application.provides()
    def make_farewell() -> str:
        return "goodbye"

    a = Application.override(greeting, "bonjour")
    b = Application.override("farewell", "au revoir")
    a.cancel()

    assert Application.resolve(greeting) == "hello"
    assert Application.resolve("farewell") == "au revoir"
    b.cancel()
    assert Application.resolve("farewell") == "goodbye"


def test_override_as_context_manager(greeting):
    with Application.override(greeting, "bonjour") as token:
        assert Application.resolve(greeting) == "bonjour"

    assert token.has_cancelled
    assert Application.resolve(greeting) == "hello"


def test_released_token_cancels_override(greeting):
    Application.override(greeting, "bonjour")
    gc.collect()

    assert Application.resolve(greeting) == "hello"


def test_cancel_action_runs_once():
    calls = []
    token = DependencyOverride(lambda: calls.append(1))

    token.cancel()
    token.cancel()
    del token
    gc.collect()

    assert calls == [1]


def test_preview_cancels_overrides_on_exit(application, greeting):
    @application.provides()
    def make_farewell() -> str:
        return "goodbye"

    with preview(
        Application.override(greeting, "bonjour"),
        Application.override(greeting, "hola"),
        Application.override("farewell", "au revoir"),
    ) as overrides:
        assert len(overrides) == 3
        assert Application.resolve(greeting) == "hola"
        assert Application.resolve("farewell") == "au revoir"

    assert Application.resolve(greeting) == "hello"
    assert Application.resolve("farewell") == "goodbye"


def test_override_survives_promotion(application, greeting):
    class Promoted(application):
        pass

    token = Application.override(greeting, "bonjour")
    Application.promote(Promoted)

    assert Application.resolve(greeting) == "bonjour"
    token.cancel()
    assert Application.resolve(greeting) == "hello"


def test_cancel_after_reset_is_harmless(greeting):
    token = Application.override(greeting, "bonjour")
    Application.reset()
    token.cancel()

    assert Application.resolve(greeting) == "hello"


def test_override_is_observed(greeting):
    Application.resolve(greeting)
    changes = []
    Application.shared().subscribe(lambda key: changes.append(Application.resolve(greeting)))

    with Application.override(greeting, "bonjour"):
        pass

    assert changes == ["bonjour", "hello"]
