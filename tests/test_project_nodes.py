import threading

from calcctx.project_node import ProjectNode, ProjectNodeKind, ProjectNodeStatus
from calcctx.project_nodes import ProjectNodes


def _node(node_id=0):
    return ProjectNode(0, node_id, 0, 0, ProjectNodeKind(), 0)


def test_updates_flow_from_other_thread():
    project = ProjectNodes("test_parent")
    project.insert("node_1", _node())
    assert project.get_updated() == []

    def worker():
        project.update_status("node_1", ProjectNodeStatus.READY)

    handle = threading.Thread(target=worker)
    handle.start()
    handle.join()

    updates = project.get_updated()
    assert len(updates) == 1
    key, node = updates.pop()
    assert key == "node_1"
    assert node.status is ProjectNodeStatus.READY
    assert project.get_updated() == []


def test_unchanged_status_is_not_reported():
    project = ProjectNodes("test")
    project.insert("n", _node())
    project.update_status("n", ProjectNodeStatus.OUTDATED)
    assert project.get_updated() == []


def test_unknown_node_is_ignored():
    project = ProjectNodes("test")
    project.update_status("missing", ProjectNodeStatus.ERROR)
    assert project.get_updated() == []


def test_each_change_bumps_version_and_last_wins():
    project = ProjectNodes("test")
    project.insert("n", _node())
    project.update_status("n", ProjectNodeStatus.CALCULATING)
    project.update_status("n", ProjectNodeStatus.ERROR)
    updates = dict(project.get_updated())
    assert list(updates) == ["n"]
    assert updates["n"].status is ProjectNodeStatus.ERROR
    assert updates["n"].version == 2


def test_concurrent_updates_are_all_collected():
    project = ProjectNodes("test")
    keys = [f"node_{i}" for i in range(20)]
    for i, key in enumerate(keys):
        project.insert(key, _node(i))
    threads = [
        threading.Thread(target=project.update_status, args=(key, ProjectNodeStatus.READY))
        for key in keys
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    updates = dict(project.get_updated())
    assert sorted(updates) == sorted(keys)
    assert all(node.status is ProjectNodeStatus.READY for node in updates.values())