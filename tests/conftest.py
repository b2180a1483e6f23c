import pytest


class RecordingDispatcher:
    """Records every invocation and answers from a table of callables."""

    def __init__(self, handlers=None):
        self.handlers = dict(handlers or {})
        self.calls = []

    def invoke(self, name, args, *, kind):
        self.calls.append((kind, name, list(args)))
        handler = self.handlers.get(name)
        if handler is None:
            return None
        return handler(*args)

    def names(self, kind=None):
        return [name for call_kind, name, _ in self.calls if kind is None or call_kind is kind]


@pytest.fixture(autouse=True)
def _clean_stepwise_env(monkeypatch):
    """Keep host environment settings out of engine configuration."""
    monkeypatch.delenv("STEPWISE_MAX_LOOP_ITERATIONS", raising=False)
    monkeypatch.delenv("STEPWISE_LOG_REDACT_ARGS", raising=False)
    yield


@pytest.fixture
def recorder():
    return RecordingDispatcher()


@pytest.fixture
def make_recorder():
    return RecordingDispatcher
