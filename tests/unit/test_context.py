import threading

from domains.file_ingest.context import CancellationSignal


def test_trigger_fires_once():
    cancel = CancellationSignal()

    assert cancel.is_set() is False
    assert cancel.trigger("first") is True
    assert cancel.trigger("second") is False
    assert cancel.is_set() is True
    assert cancel.reason == "first"


def test_listeners_are_called_exactly_once():
    cancel = CancellationSignal()
    calls = []
    cancel.add_listener(calls.append)

    cancel.trigger("stop")
    cancel.trigger("again")

    assert calls == ["stop"]


def test_late_listener_runs_immediately():
    cancel = CancellationSignal()
    cancel.trigger("stop")

    calls = []
    cancel.add_listener(calls.append)
    assert calls == ["stop"]


def test_failing_listener_does_not_block_others():
    cancel = CancellationSignal()
    calls = []

    def broken(reason):
        raise RuntimeError("listener failure")

    cancel.add_listener(broken)
    cancel.add_listener(calls.append)
    cancel.trigger("stop")

    assert calls == ["stop"]


def test_wait_unblocks_on_trigger():
    cancel = CancellationSignal()
    assert cancel.wait(0.01) is False

    timer = threading.Timer(0.05, cancel.trigger, args=("timer",))
    timer.start()
    assert cancel.wait(5) is True
    timer.join()


def test_sentinel_matches_base_name_only(context):
    assert context.is_sentinel("/some/dir/STOP") is True
    assert context.is_sentinel("STOP") is True
    assert context.is_sentinel("/some/dir/STOP.txt") is False
    assert context.is_sentinel("/STOP/file") is False


def test_sentinel_disabled_when_unset(context):
    context.settings.exit_on_filename = ""
    assert context.is_sentinel("/some/dir/STOP") is False
