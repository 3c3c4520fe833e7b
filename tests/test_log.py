import queue

from mangalink_app import log as log_module


def test_message_queue_drops_oldest_when_full(monkeypatch):
    monkeypatch.setattr(log_module, "msg_queue", queue.Queue(maxsize=2))

    for n in range(5):
        log_module.log(f"message {n}")

    messages = log_module.drain_messages()
    assert len(messages) == 2
    assert messages[0].endswith("message 3")
    assert messages[1].endswith("message 4")
    assert log_module.drain_messages() == []
