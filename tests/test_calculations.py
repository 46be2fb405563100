import pytest

from calcctx.calculation_graph import CalculationTags, Calculus, CycleError
from calcctx.calculations import Calculations
from calcctx.link import Channel
from calcctx.project_node import ProjectNodeStatus
from calcctx.snapshot import Event


class Calc(Calculus):
    def __init__(self, calc_id, inputs, outputs, calls, fail=False):
        self._id = calc_id
        self._inputs = inputs
        self._outputs = outputs
        self._calls = calls
        self._fail = fail

    def id(self):
        return self._id

    def tags(self):
        return CalculationTags(inputs=list(self._inputs), outputs=list(self._outputs))

    def eval(self):
        self._calls.append(self._id)
        if self._fail:
            raise RuntimeError(f"{self._id} broke")


def drain(channel):
    items = []
    while True:
        item = channel.try_recv()
        if item is None:
            return items
        items.append(item)


def test_all_succeed_reports_ready_and_ok():
    calls = []
    tree, client = Channel(), Channel()
    calcs = Calculations("test", tree, [
        Calc("A", ["root"], ["val_a"], calls),
        Calc("B", ["val_a"], ["val_b"], calls),
    ])
    calcs.eval(Event(), client, ["root"])
    assert calls == ["A", "B"]
    assert drain(tree) == [("A", ProjectNodeStatus.READY), ("B", ProjectNodeStatus.READY)]
    assert drain(client) == [Event().reply_ok()]


def test_failure_skips_downstream():
    calls = []
    tree, client = Channel(), Channel()
    calcs = Calculations("test", tree, [
        Calc("A", ["root"], ["val_a"], calls),
        Calc("B", ["val_a"], ["val_b"], calls, fail=True),
        Calc("C", ["val_b"], ["val_c"], calls),
        Calc("D", ["val_a"], ["val_d"], calls),
    ])
    calcs.eval(Event(), client, ["root"])
    assert "C" not in calls
    assert sorted(calls) == ["A", "B", "D"]
    assert dict(drain(tree)) == {
        "A": ProjectNodeStatus.READY,
        "B": ProjectNodeStatus.ERROR,
        "C": ProjectNodeStatus.OUTDATED,
        "D": ProjectNodeStatus.READY,
    }
    events = drain(client)
    assert len(events) == 2
    assert events[0].error is not None and "B" in events[0].error
    assert events[1] == Event().reply_ok()


def test_failure_skips_transitively():
    calls = []
    tree, client = Channel(), Channel()
    calcs = Calculations("test", tree, [
        Calc("B", ["root"], ["val_b"], calls, fail=True),
        Calc("C", ["val_b"], ["val_c"], calls),
        Calc("E", ["val_c"], ["val_e"], calls),
    ])
    calcs.eval(Event(), client, ["root"])
    assert calls == ["B"]
    assert drain(tree) == [
        ("B", ProjectNodeStatus.ERROR),
        ("C", ProjectNodeStatus.OUTDATED),
        ("E", ProjectNodeStatus.OUTDATED),
    ]


def test_no_changes_only_replies_ok():
    calls = []
    tree, client = Channel(), Channel()
    calcs = Calculations("test", tree, [Calc("A", ["root"], ["val_a"], calls)])
    calcs.eval(Event(), client, [])
    assert calls == []
    assert drain(tree) == []
    assert drain(client) == [Event()]


def test_closed_tree_link_does_not_stop_calculations():
    calls = []
    tree, client = Channel(), Channel()
    tree.close()
    calcs = Calculations("test", tree, [
        Calc("A", ["root"], ["val_a"], calls),
        Calc("B", ["val_a"], ["val_b"], calls),
    ])
    calcs.eval(Event(), client, ["root"])
    assert calls == ["A", "B"]
    assert drain(client) == [Event()]


def test_cycle_is_rejected():
    calls = []
    with pytest.raises(CycleError):
        Calculations("test", Channel(), [
            Calc("A", ["val_b"], ["val_a"], calls),
            Calc("B", ["val_a"], ["val_b"], calls),
        ])