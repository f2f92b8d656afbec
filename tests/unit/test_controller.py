from typing import Optional

import pytest

from cdb_allowlist.base import ClusterSource
from cdb_allowlist.exceptions import RemoteUnavailable
from cdb_allowlist.models import ConvergenceResult, Declaration, LabelSelector, Node
from cdb_operator.controller import Controller
from cdb_operator.workqueue import WorkQueue


class StaticSource(ClusterSource):
    def __init__(self, declarations, nodes=()):
        self.declarations = list(declarations)
        self.nodes = list(nodes)
        self.selectors = []

    def list_declarations(self):
        return list(self.declarations)

    def list_nodes(self, selector):
        self.selectors.append(selector)
        return list(self.nodes)


class RecordingDriver:
    def __init__(self, failing=()):
        self.failing = set(failing)
        self.calls = []

    def reconcile(self, declaration, nodes):
        self.calls.append((declaration.key, list(nodes)))
        if declaration.key in self.failing:
            raise RemoteUnavailable(f"{declaration.key} failed")
        return [ConvergenceResult(declaration.project_id, declaration.service_id, (), True)]


def build_declaration(name: str, selector: Optional[LabelSelector] = None) -> Declaration:
    return Declaration(
        resource_id=f"rid-{name}",
        name=name,
        namespace="default",
        project_id="proj",
        service_id=f"svc-{name}",
        selector=selector or LabelSelector(),
    )


def test_enqueue_all_queues_every_declaration():
    source = StaticSource([build_declaration("a"), build_declaration("b")])
    controller = Controller(source, RecordingDriver())

    assert controller.enqueue_all() == 2
    assert len(controller.queue) == 2


def test_reconcile_key_uses_the_declaration_selector():
    selector = LabelSelector(match_labels={"pool": "db"})
    node = Node("node1", "uid-1")
    source = StaticSource([build_declaration("a", selector)], nodes=[node])
    driver = RecordingDriver()
    controller = Controller(source, driver)

    results = controller.reconcile_key("default/a")

    assert source.selectors == [selector]
    assert driver.calls == [("default/a", [node])]
    assert results[0].service_id == "svc-a"


def test_reconcile_key_of_deleted_declaration_is_a_noop():
    driver = RecordingDriver()
    controller = Controller(StaticSource([]), driver)

    assert controller.reconcile_key("default/gone") == []
    assert driver.calls == []


def test_reconcile_all_attempts_everything_then_raises():
    source = StaticSource([build_declaration("a"), build_declaration("b")])
    driver = RecordingDriver(failing={"default/a"})
    controller = Controller(source, driver)

    with pytest.raises(RemoteUnavailable, match="default/a"):
        controller.reconcile_all()

    assert [key for key, _ in driver.calls] == ["default/a", "default/b"]


def test_controller_keeps_the_given_empty_queue():
    queue = WorkQueue(base_backoff=42.0, max_backoff=42.0)

    controller = Controller(StaticSource([]), RecordingDriver(), queue)

    assert len(queue) == 0
    assert controller.queue is queue
    assert controller.queue.backoff_for("default/a") == pytest.approx(42.0)


def test_process_next_requeues_failures_with_backoff():
    source = StaticSource([build_declaration("a")])
    queue = WorkQueue(base_backoff=1.0, max_backoff=60.0)
    controller = Controller(source, RecordingDriver(failing={"default/a"}), queue)
    controller.enqueue("default/a")

    assert controller.queue is queue
    assert controller.process_next(timeout=0) is True
    # One recorded failure doubles the next delay.
    assert queue.backoff_for("default/a") == pytest.approx(2.0)
    assert len(queue) == 0
    queue.shutdown()


def test_process_next_forgets_successful_keys():
    source = StaticSource([build_declaration("a")])
    queue = WorkQueue(base_backoff=30.0)
    controller = Controller(source, RecordingDriver(), queue)
    queue.add_rate_limited("default/a")
    queue.add("default/a")

    assert controller.process_next(timeout=0) is True
    assert queue.backoff_for("default/a") == pytest.approx(30.0)
    assert controller.process_next(timeout=0) is False
    queue.shutdown()
