"""
Runs acceptance test steps through the engine: apply a configuration, check
that the plan is empty afterwards, run the step's checks, optionally import
and compare, and always destroy what was created.

Live runs need ``TF_ACC`` set and ``ARM_*`` credentials; passing ``client``
runs the steps against that client instead (e.g. an in-memory fake).
"""
import logging
import os
import re
import threading
import unittest
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from azprovider.engine import NO_OP, Engine, State
from azprovider.errors import response_was_not_found
from azprovider.parsers.terraform import parse_string

logger = logging.getLogger(__name__)

CheckFunc = Callable[[State, Any], None]

# Sequential tests share subscription-wide settings and must never overlap.
_sequential_lock = threading.Lock()


@dataclass
class TestStep:
    config: str = ""
    check: Optional[CheckFunc] = None
    expect_error: Optional[str] = None      # regular expression the error must match
    resource_name: str = ""
    import_state: bool = False
    import_state_verify: bool = False
    import_state_verify_ignore: List[str] = field(default_factory=list)

    __test__ = False


class StepError(AssertionError):
    def __init__(self, index: int, total: int, message: str):
        self.index = index
        self.total = total
        super().__init__(f"Step {index}/{total} error: {message}")


def _ignored(key: str, ignore: List[str]) -> bool:
    return any(key == i or key.startswith(f"{i}.") for i in ignore)


def _verify_import(engine: Engine, step: TestStep, state: State, index: int, total: int) -> None:
    entry = state.get(step.resource_name)
    if entry is None:
        raise StepError(index, total, f"Import: {step.resource_name} is not in the state")
    resource_type = entry.resource_type
    imported = engine.import_resource(resource_type, entry.instance.id)
    if not step.import_state_verify:
        return

    ignore = ["timeouts"] + step.import_state_verify_ignore
    expected = {k: v for k, v in entry.instance.flatmap().items() if not _ignored(k, ignore)}
    actual = {k: v for k, v in imported.flatmap().items() if not _ignored(k, ignore)}
    if expected != actual:
        diff: Dict[str, Any] = {}
        for key in sorted(set(expected) | set(actual)):
            if expected.get(key) != actual.get(key):
                diff[key] = (expected.get(key), actual.get(key))
        lines = "\n".join(f"  {k}: state={v[0]!r} imported={v[1]!r}" for k, v in diff.items())
        raise StepError(index, total, f"ImportStateVerify attributes not equivalent:\n{lines}")


def _apply_step(engine: Engine, step: TestStep, blocks: List[Any], state: State,
                index: int, total: int) -> None:
    try:
        engine.apply(blocks, state)
    except Exception as exc:
        if step.expect_error and re.search(step.expect_error, str(exc)):
            logger.info(f"step {index}: got the expected error: {exc}")
            return
        raise StepError(index, total, f"Error running apply: {exc}") from exc

    if step.expect_error:
        raise StepError(index, total, f"Expected an error matching {step.expect_error!r} but got none")

    pending = [c for c in engine.plan(blocks, state) if c.action != NO_OP]
    if pending:
        actions = ", ".join(f"{c.address} ({c.action})" for c in pending)
        raise StepError(index, total, f"After applying this test step, the plan was not empty: {actions}")

    if step.check is not None:
        try:
            step.check(state, engine.client)
        except AssertionError as exc:
            raise StepError(index, total, f"Check failed: {exc}") from exc


def _check_destroyed(test_resource: Any, client: Any, resource_type: str, entries: List[Any]) -> None:
    for entry in entries:
        if entry.mode != "managed" or entry.resource_type != resource_type:
            continue
        try:
            exists = test_resource.exists(client, entry.instance)
        except Exception as exc:
            if response_was_not_found(exc) or response_was_not_found(exc.__cause__):
                continue
            raise
        if exists:
            raise AssertionError(f"{entry.address} still exists in Azure after destroy")


def run(data: Any, test_resource: Any, steps: List[TestStep], client: Optional[Any] = None,
        sequential: bool = False) -> None:
    if client is None and not os.environ.get("TF_ACC"):
        raise unittest.SkipTest("Acceptance tests skipped unless env 'TF_ACC' set")

    if sequential:
        with _sequential_lock:
            _run(data, test_resource, steps, client)
    else:
        _run(data, test_resource, steps, client)


def _run(data: Any, test_resource: Any, steps: List[TestStep], client: Optional[Any]) -> None:
    engine = Engine(client=client)
    state = State()
    last_blocks: List[Any] = []
    failed = True
    try:
        for i, step in enumerate(steps, start=1):
            logger.info(f"{data.resource_name}: running step {i}/{len(steps)}")
            if step.import_state:
                _verify_import(engine, step, state, i, len(steps))
                continue
            last_blocks = parse_string(step.config, f"step {i}")
            _apply_step(engine, step, last_blocks, state, i, len(steps))
        failed = False
    finally:
        created = [e for e in state if e.mode == "managed"]
        try:
            if len(state):
                engine.destroy(state, last_blocks)
            if engine.client is not None:
                _check_destroyed(test_resource, engine.client, data.resource_type, created)
        except Exception:
            if not failed:
                raise
            logger.exception(f"{data.resource_name}: destroy after a failed step also failed")
