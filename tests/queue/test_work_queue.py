"""Tests for the sqlite-backed Work Queue."""

from eventscale.core.settings import QueueConfig
from eventscale.queue.work_queue import STATUS_DEAD, WorkQueue


class TestDelivery:
    def test_receive_hides_message(self, queue):
        queue.enqueue("a")
        first = queue.receive()
        assert [m.body for m in first] == ["a"]
        assert first[0].receive_count == 1
        assert queue.receive() == []

    def test_visible_again_after_timeout(self, queue, clock):
        message_id = queue.enqueue("a")
        queue.receive()
        clock.advance(seconds=301)
        again = queue.receive()
        assert again[0].id == message_id
        assert again[0].receive_count == 2

    def test_ack_deletes(self, queue):
        queue.enqueue("a")
        message = queue.receive()[0]
        queue.ack(message.id)
        assert queue.depth() == 0

    def test_fifo_order(self, queue, clock):
        queue.enqueue("first")
        clock.advance(seconds=1)
        queue.enqueue("second")
        assert [m.body for m in queue.receive(max_messages=5)] == ["first", "second"]


class TestFailures:
    def test_nack_makes_visible_immediately(self, queue):
        queue.enqueue("a")
        message = queue.receive()[0]
        queue.nack(message.id, "boom")
        assert queue.receive()[0].id == message.id

    def test_dead_letter_after_max_receives(self, queue):
        message_id = queue.enqueue("a")
        for _ in range(3):
            message = queue.receive()[0]
            queue.nack(message.id, "boom")

        dead = queue.list_dead()
        assert [m.id for m in dead] == [message_id]
        assert dead[0].status == STATUS_DEAD
        assert dead[0].last_error == "boom"
        assert queue.receive() == []

    def test_redrive_one(self, queue):
        kept = queue.enqueue("a")
        moved = queue.enqueue("b")
        for _ in range(3):
            for message in queue.receive(max_messages=2):
                queue.nack(message.id, "boom")

        assert queue.redrive(moved) == 1
        assert [m.id for m in queue.list_ready()] == [moved]
        assert [m.id for m in queue.list_dead()] == [kept]
        assert queue.list_ready()[0].receive_count == 0

    def test_redrive_all(self, queue):
        queue.enqueue("a")
        for _ in range(3):
            queue.nack(queue.receive()[0].id, "boom")
        assert queue.redrive() == 1
        assert queue.depth() == 1

    def test_no_redrive_policy_drops(self, conn, clock):
        queue = WorkQueue(conn, QueueConfig(max_receive_count=0), clock=clock)
        queue.enqueue("a")
        queue.nack(queue.receive()[0].id, "boom")
        assert queue.depth() == 0
        assert queue.list_dead() == []
