# calcctx

`calcctx` is a library for running engineering calculations over shared state.

- **Versioned context** (`calcctx.context`). A `Context` holds the calculation data
  (`RawContext`, with its `InitialCtx`). All work goes through a `ContextTransaction`,
  which you get from `Context.transaction(link, api_client)`. The transaction works on a
  private copy of the state. Its methods are:
  - `read(field)` returns a copy of `initial`, `apparent_frequencies` or `unit_area`.
  - `write(field, value)` stages a new `apparent_frequencies` or `unit_area`.
  - `commit()` applies the changes and raises `ConflictError` if another transaction
    committed first. The rejected transaction is kept in `err.transaction`.
  - `force_commit()` applies the changes even if another transaction committed first.
  - `rollback()` drops the changes.

  Any other field passed to `read` or `write` raises `ContextAccessError`.
  `Context.version()` returns the current version. `Context.get_size()` returns the
  approximate size of the data in bytes. `Initial(parent, ctx).eval()` opens a fresh
  transaction.
- **Calculation graph** (`calcctx.calculation_graph`). Each `Calculus` implements three
  methods: `id()`, `tags()` and `eval()`. `tags()` returns the `CalculationTags` inputs
  and outputs of the calculation. `CalculationGraph` orders the calculations
  topologically (`global_order`) and raises `CycleError` on a circular dependency.
  `plan(changes)` returns only the calculations that the changed keys affect, in
  execution order. `neighbors(calc_id)` returns the calculations that depend directly
  on `calc_id`.
- **Dispatcher** (`calcctx.calculations`). `Calculations(parent, tree_link, calculuses)`
  builds the graph. `eval(event, link, changes)` runs the plan for the changed keys:
  - It sends `(calc_id, ProjectNodeStatus)` to `tree_link` for every planned calculation.
    The status is `READY` on success and `ERROR` on failure.
  - It marks every calculation downstream of a failure `OUTDATED` and skips it.
  - It sends an error reply to `link` for each failure and a final OK reply.
- **Project tree** (`calcctx.project_node`, `calcctx.project_nodes`,
  `calcctx.project_tree`). `ProjectTree` runs in its own thread once `run()` is called.
  It reads `(node_id, status)` pairs from the channel returned by `link()`, then applies
  them to its `nodes`. Only nodes registered with `nodes.insert(key, node)` are updated.
  For every node whose status changed, it sends an `Event` to the client. Stop it with
  `exit()` and `wait()`.
- **Snapshots** (`calcctx.snapshot`). A `Snapshot` collects the key/value pairs of
  `Properties` objects. `add` appends an object's pairs, and `send` sends them to the
  UI link as an `Event`. `commit` passes them to the `ApiClient` as a single `Upsert`
  request, and `rollback` drops them. A snapshot can finish only once.
- **Message links** (`calcctx.link`, `calcctx.hub`, `calcctx.request`). `Channel` is a
  closable thread-safe queue. `Link.split(parent)` returns a connected pair of links.
  These support `send`, `recv`, `recv_timeout`, `try_recv`, request/reply `call`, and a
  background `listen`. Values are pickled on the way through. `Hub` serves many links
  with one callback. `Request` and `AsyncRequest` run a function that borrows a link
  for the duration of one `fetch`.
- **Configuration** (`calcctx.conf`). `Conf.read(path)` loads a YAML file. It raises
  `ConfError` if the file cannot be opened or is invalid.

## Installation

```
pip install calcctx
```

## Example

```python
from calcctx.calculation_graph import CalculationGraph, CalculationTags, Calculus


class Step(Calculus):
    def __init__(self, name, inputs, outputs):
        self._name, self._inputs, self._outputs = name, inputs, outputs

    def id(self):
        return self._name

    def tags(self):
        return CalculationTags(inputs=self._inputs, outputs=self._outputs)

    def eval(self):
        pass


graph = CalculationGraph("app", [
    Step("B", ["val_a"], ["val_b"]),
    Step("A", ["input_root"], ["val_a"]),
    Step("C", ["val_b"], ["val_c"]),
])
print([calc.id() for calc in graph.plan(["val_a"])])  # ['B', 'C']
```

Transactions on a context:

```python
from calcctx.context import ConflictError, Context
from calcctx.link import Channel
from calcctx.snapshot import ApiClient

ctx = Context()
tx1 = ctx.transaction(Channel(), ApiClient())
tx2 = ctx.transaction(Channel(), ApiClient())
tx1.commit()
try:
    tx2.commit()
except ConflictError:
    tx2 = ctx.transaction(Channel(), ApiClient())  # retry from fresh state
    tx2.commit()
print(ctx.version())  # 2
```

## Configuration file

`project-tree` is required. `thread-pool` is an optional non-negative integer.
`wait-started` is an optional duration, given as whole seconds and nanoseconds.

```yaml
thread-pool: 4
project-tree:
  wait-started:
    secs: 0
    nanos: 500000000
```

`Conf.read` gives `thread_pool == 4` and `project_tree.wait_started == 0.5` for this file.

## What it does not do

- There is no database behind `ApiClient`. It only keeps the `Sql` requests it receives
  in its `requests` list, so snapshots and fetches are recorded but not stored anywhere.
- `Event` is a plain record of items and an optional error message. No client or UI
  consumes it.
- The package has no command-line program. It is used as a library only.

## Running the tests

```
pip install calcctx[test]
pytest
```