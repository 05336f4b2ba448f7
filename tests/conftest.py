import pytest

from appdependency.application import Application


@pytest.fixture
def application():
    """A fresh application subclass, promoted to be the shared registry."""

    class TestApplication(Application):
        pass

    Application.reset()
    Application.set_logging_enabled(False)
    Application.promote(TestApplication)
    yield TestApplication
    Application.reset()
    Application.set_logging_enabled(False)
