import pytest

from cuadriga.lifecycle import Bus, CallbackReturn, LifecycleNode, State


class RecordingNode(LifecycleNode):
    def __init__(self, bus, parameters=None, results=None):
        super().__init__("recording", bus, parameters)
        self.calls = []
        self.results = results or {}

    def _record(self, hook, state):
        self.calls.append((hook, state))
        result = self.results.get(hook, CallbackReturn.SUCCESS)
        if isinstance(result, Exception):
            raise result
        return result

    def on_configure(self, state):
        return self._record("configure", state)

    def on_activate(self, state):
        return self._record("activate", state)

    def on_deactivate(self, state):
        return self._record("deactivate", state)

    def on_cleanup(self, state):
        return self._record("cleanup", state)

    def on_shutdown(self, state):
        return self._record("shutdown", state)


def test_full_cycle_states():
    node = RecordingNode(Bus())
    assert node.state() is State.UNCONFIGURED
    assert node.configure() is State.INACTIVE
    assert node.activate() is State.ACTIVE
    assert node.deactivate() is State.INACTIVE
    assert node.cleanup() is State.UNCONFIGURED
    assert node.configure() is State.INACTIVE
    assert node.shutdown() is State.FINALIZED
    assert node.state() is State.FINALIZED


def test_callbacks_receive_previous_state():
    node = RecordingNode(Bus())
    node.configure()
    node.activate()
    assert node.calls == [
        ("configure", State.UNCONFIGURED),
        ("activate", State.INACTIVE),
    ]


def test_invalid_transition_keeps_state_and_skips_callback():
    node = RecordingNode(Bus())
    assert node.activate() is State.UNCONFIGURED
    assert node.deactivate() is State.UNCONFIGURED
    assert node.cleanup() is State.UNCONFIGURED
    assert node.calls == []


def test_failure_keeps_previous_state():
    node = RecordingNode(Bus(), results={"configure": CallbackReturn.FAILURE})
    assert node.configure() is State.UNCONFIGURED


def test_error_finalizes():
    node = RecordingNode(Bus(), results={"configure": CallbackReturn.ERROR})
    assert node.configure() is State.FINALIZED


def test_exception_in_callback_finalizes():
    node = RecordingNode(Bus(), results={"activate": RuntimeError("boom")})
    node.configure()
    assert node.activate() is State.FINALIZED


def test_shutdown_from_finalized_is_rejected():
    node = RecordingNode(Bus())
    node.shutdown()
    node.calls.clear()
    assert node.shutdown() is State.FINALIZED
    assert node.calls == []


def test_declare_parameter_default_and_override():
    node = LifecycleNode("n", Bus(), {"port": 8000, "ip": "127.0.0.1"})
    assert node.declare_parameter("ip", "") == "127.0.0.1"
    assert node.declare_parameter("port", 0) == 8000
    assert node.declare_parameter("device_name", "") == ""


def test_declare_parameter_int_accepted_for_float():
    node = LifecycleNode("n", Bus(), {"rate": 55})
    value = node.declare_parameter("rate", 1.5)
    assert value == 55 and isinstance(value, float)


@pytest.mark.parametrize(
    "default, override",
    [(0, "8000"), (0, True), ("", 3), (False, 1), (1.0, "x")],
)
def test_declare_parameter_type_mismatch(default, override):
    node = LifecycleNode("n", Bus(), {"p": override})
    with pytest.raises(TypeError):
        node.declare_parameter("p", default)


def test_declare_parameter_twice_raises():
    node = LifecycleNode("n", Bus())
    node.declare_parameter("ip", "")
    with pytest.raises(ValueError):
        node.declare_parameter("ip", "")


def test_bus_delivers_to_subscribers_of_topic_only():
    bus = Bus()
    got_a, got_b = [], []
    bus.subscribe("a", got_a.append)
    bus.subscribe("b", got_b.append)
    assert bus.publish("a", "hello") == 1
    assert got_a == ["hello"]
    assert got_b == []


def test_bus_unsubscribe():
    bus = Bus()
    got = []
    bus.subscribe("a", got.append)
    bus.unsubscribe("a", got.append)
    assert bus.publish("a", 1) == 0
    assert got == []
    with pytest.raises(ValueError):
        bus.unsubscribe("a", got.append)


def test_lifecycle_publisher_drops_until_activated():
    bus = Bus()
    got = []
    bus.subscribe("out", got.append)
    node = LifecycleNode("n", bus)
    publisher = node._create_publisher("out")
    assert publisher.publish("early") is False
    publisher.on_activate()
    assert publisher.publish("late") is True
    publisher.on_deactivate()
    publisher.publish("after")
    assert got == ["late"]