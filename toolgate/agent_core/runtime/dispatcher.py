from __future__ import annotations

"""Invocation dispatcher.

``InvocationDispatcher`` orchestrates a single tool call:

1. Resolve the descriptor from the ``CapabilityRegistry``.
2. Validate the arguments against the descriptor's input schema and the
   policy's argument size limit.
3. Non-sensitive tools run immediately through the ``Executor``.
4. Sensitive tools open an approval in the ``ApprovalLedger`` and return a
   ``pending_approval`` result. A background continuation waits for the
   decision and then either runs the executor (approved) or settles the call
   as denied.

Per call id
-----------

A call id is processed at most once. While a call is in flight, a repeat
``invoke`` with the same call id attaches to it: a gated call shares its
approval and outcome, a direct call shares its running result. Once settled,
a repeat ``invoke`` returns the settled outcome and never executes again.
Settled outcomes are kept for the most recent ``max_settled`` call ids.

The in-flight tables are filled synchronously, before the first ``await``, so
concurrent invocations on the same event loop cannot both pass the check.

Several dispatchers may share one approval store and so wait on the same
approval. Before running an approved call each continuation claims it through
``ApprovalLedger.claim_execution``; only the winner runs the executor, the
others settle as ``executed_elsewhere``.
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from ..approvals.ledger import ApprovalLedger
from ..capabilities.base import ExecutionContext, Executor, HandlerExecutor, ToolDescriptor
from ..capabilities.registry import CapabilityRegistry
from ..errors import DuplicateCallId, ExecutionFailed, SchemaValidationFailed
from ..policy.models import SensitivityPolicy
from ..policy.sensitivity import DEFAULT_POLICY, check_args_size
from ..schemas.domain import Approval, ApprovalDecision, InvocationContext
from .models import InvocationResult, InvocationStatus

logger = logging.getLogger(__name__)

DEFAULT_MAX_SETTLED = 10_000


def _execution_failed(tool_name: str, call_id: str, cause: BaseException) -> ExecutionFailed:
    err = ExecutionFailed(tool_name, call_id, cause)
    err.__cause__ = cause
    return err


def _mark_retrieved(fut: asyncio.Future[Any]) -> None:
    # Outcomes nobody awaits must not log "exception was never retrieved".
    if not fut.cancelled():
        fut.exception()


@dataclass
class _InFlight:
    call_id: str
    tool_name: str
    created: asyncio.Future[Approval]
    outcome: asyncio.Future[InvocationResult]
    task: Optional[asyncio.Task[None]] = field(default=None)


class InvocationDispatcher:
    """Validate, gate and execute tool invocations."""

    def __init__(
        self,
        registry: CapabilityRegistry,
        ledger: ApprovalLedger,
        executor: Optional[Executor] = None,
        policy: Optional[SensitivityPolicy] = None,
        *,
        dispatcher_id: Optional[str] = None,
        max_settled: int = DEFAULT_MAX_SETTLED,
    ) -> None:
        """
        Initialize the dispatcher.

        Args:
            registry: Registry the tool names are resolved against.
            ledger: Approval ledger for sensitive tools.
            executor: Runs tool bodies. Defaults to ``HandlerExecutor`` over ``registry``.
            policy: Supplies the argument size limit. Defaults to ``DEFAULT_POLICY``.
            dispatcher_id: Name recorded on approvals this dispatcher claims for
                execution. Defaults to a random id.
            max_settled: How many settled call ids are remembered; the least
                recently used are forgotten first.
        """
        if max_settled < 1:
            raise ValueError("max_settled must be at least 1")
        self._registry = registry
        self._ledger = ledger
        self._executor: Executor = executor if executor is not None else HandlerExecutor(registry)
        self._policy = policy or DEFAULT_POLICY
        self._dispatcher_id = dispatcher_id or f"dispatcher-{uuid4().hex[:12]}"
        self._max_settled = max_settled
        self._inflight: Dict[str, _InFlight] = {}
        self._running: Dict[str, asyncio.Future[InvocationResult]] = {}
        self._settled: OrderedDict[str, asyncio.Future[InvocationResult]] = OrderedDict()

    @property
    def ledger(self) -> ApprovalLedger:
        return self._ledger

    @property
    def registry(self) -> CapabilityRegistry:
        return self._registry

    @property
    def dispatcher_id(self) -> str:
        return self._dispatcher_id

    async def invoke(
        self,
        call_id: str,
        tool_name: str,
        arguments: Optional[Mapping[str, Any]],
        context: InvocationContext,
    ) -> InvocationResult:
        """
        Invoke a tool.

        Returns:
            A ``completed`` result for non-sensitive tools, or a
            ``pending_approval`` result carrying the approval and an ``outcome``
            future for sensitive ones.

        Raises:
            CapabilityNotFound: If no tool is registered under ``tool_name``.
            SchemaValidationFailed: If the arguments do not match the schema.
            ExecutionFailed: If a non-sensitive tool's executor raises, or the
                call id already settled with that failure.
        """
        settled = self._settled_outcome(call_id)
        if settled is not None:
            return settled.result()
        record = self._inflight.get(call_id)
        if record is not None:
            logger.debug(f"Attaching repeated invocation to in-flight call {call_id}")
            return await self._attach(record)
        running = self._running.get(call_id)
        if running is not None:
            logger.debug(f"Attaching repeated invocation to running call {call_id}")
            return await asyncio.shield(running)

        descriptor = self._registry.lookup(tool_name)
        validated = self._validate(descriptor, arguments)

        if not descriptor.is_sensitive:
            return await self._run_direct(descriptor, validated, call_id, context)

        loop = asyncio.get_running_loop()
        record = _InFlight(
            call_id=call_id,
            tool_name=tool_name,
            created=loop.create_future(),
            outcome=loop.create_future(),
        )
        record.created.add_done_callback(_mark_retrieved)
        record.outcome.add_done_callback(_mark_retrieved)
        self._inflight[call_id] = record

        try:
            approval = await self._open_approval(descriptor, validated, call_id, context)
        except asyncio.CancelledError:
            self._inflight.pop(call_id, None)
            record.created.cancel()
            record.outcome.cancel()
            raise
        except Exception as e:
            self._inflight.pop(call_id, None)
            record.created.set_exception(e)
            record.outcome.cancel()
            raise

        record.created.set_result(approval)
        record.task = asyncio.create_task(
            self._continue(record, descriptor, validated, context, approval),
            name=f"toolgate-approval-{call_id}",
        )
        logger.info(f"Call {call_id} ({tool_name}) awaiting approval {approval.approval_id}")
        return InvocationResult(
            call_id=call_id,
            tool_name=tool_name,
            status=InvocationStatus.pending_approval,
            approval=approval,
            outcome=record.outcome,
        )

    async def wait(self, call_id: str) -> InvocationResult:
        """
        Return the final result of a call, suspending until it is settled.

        Raises:
            KeyError: If the call id is neither in flight nor remembered as settled.
            ExecutionFailed: If the execution failed.
        """
        settled = self._settled_outcome(call_id)
        if settled is not None:
            return settled.result()
        record = self._inflight.get(call_id)
        if record is not None:
            return await asyncio.shield(record.outcome)
        running = self._running.get(call_id)
        if running is not None:
            return await asyncio.shield(running)
        raise KeyError(f"unknown call_id: {call_id}")

    def pending_calls(self) -> List[str]:
        """Call ids of gated invocations still awaiting a decision."""
        return list(self._inflight)

    async def shutdown(self) -> None:
        """Cancel outstanding continuations. Approvals stay pending in the ledger."""
        records = [r for r in self._inflight.values() if r.task is not None]
        tasks = [r.task for r in records if r.task is not None and not r.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} pending continuation(s)")
        # A task cancelled before its first step never enters its own cleanup.
        for record in records:
            if not record.outcome.done():
                record.outcome.cancel()
            self._inflight.pop(record.call_id, None)

    def _settled_outcome(self, call_id: str) -> Optional[asyncio.Future[InvocationResult]]:
        fut = self._settled.get(call_id)
        if fut is not None:
            self._settled.move_to_end(call_id)
        return fut

    def _remember(self, call_id: str, fut: asyncio.Future[InvocationResult]) -> None:
        self._settled[call_id] = fut
        self._settled.move_to_end(call_id)
        while len(self._settled) > self._max_settled:
            self._settled.popitem(last=False)

    def _validate(self, descriptor: ToolDescriptor, arguments: Optional[Mapping[str, Any]]) -> BaseModel:
        raw = dict(arguments or {})
        try:
            validated = descriptor.input_schema.model_validate(raw)
        except ValidationError as e:
            raise SchemaValidationFailed(descriptor.name, e.errors(include_url=False, include_context=False)) from e
        error = check_args_size(raw, self._policy)
        if error is not None:
            raise SchemaValidationFailed(descriptor.name, [{"loc": (), "msg": error, "type": "args_too_large"}])
        return validated

    async def _execute(self, descriptor: ToolDescriptor, arguments: BaseModel, context: ExecutionContext) -> Any:
        try:
            return await self._executor.run(descriptor.name, arguments, context)
        except Exception as e:
            logger.warning(f"Tool {descriptor.name} failed (call_id={context.call_id}): {e}")
            raise _execution_failed(descriptor.name, context.call_id, e) from e

    async def _run_direct(
        self,
        descriptor: ToolDescriptor,
        arguments: BaseModel,
        call_id: str,
        context: InvocationContext,
    ) -> InvocationResult:
        fut: asyncio.Future[InvocationResult] = asyncio.get_running_loop().create_future()
        fut.add_done_callback(_mark_retrieved)
        self._running[call_id] = fut
        try:
            output = await self._execute(descriptor, arguments, ExecutionContext(call_id, descriptor.name, context))
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except ExecutionFailed as e:
            fut.set_exception(e)
            self._remember(call_id, fut)
            raise
        finally:
            self._running.pop(call_id, None)
        result = InvocationResult(
            call_id=call_id, tool_name=descriptor.name, status=InvocationStatus.completed, output=output
        )
        fut.set_result(result)
        self._remember(call_id, fut)
        return result

    async def _open_approval(
        self,
        descriptor: ToolDescriptor,
        arguments: BaseModel,
        call_id: str,
        context: InvocationContext,
    ) -> Approval:
        try:
            return await self._ledger.create(
                agent_id=context.agent_id,
                session_id=context.session_id,
                tool_name=descriptor.name,
                arguments=arguments.model_dump(mode="json"),
                user_id=context.user_id,
                is_sensitive=descriptor.is_sensitive,
                operation_type=descriptor.operation_type,
                call_id=call_id,
            )
        except DuplicateCallId:
            # Opened by another process sharing the ledger's store.
            existing = await self._ledger.find_by_call_id(call_id)
            if existing is None:
                raise
            logger.info(f"Call {call_id} attached to existing approval {existing.approval_id}")
            return existing

    async def _attach(self, record: _InFlight) -> InvocationResult:
        approval = await asyncio.shield(record.created)
        if record.outcome.done() and not record.outcome.cancelled():
            return record.outcome.result()
        return InvocationResult(
            call_id=record.call_id,
            tool_name=record.tool_name,
            status=InvocationStatus.pending_approval,
            approval=approval,
            outcome=record.outcome,
        )

    async def _continue(
        self,
        record: _InFlight,
        descriptor: ToolDescriptor,
        arguments: BaseModel,
        context: InvocationContext,
        approval: Approval,
    ) -> None:
        outcome = record.outcome
        try:
            decided = await self._ledger.wait_for_decision(approval.approval_id)
            if decided.decision == ApprovalDecision.approved and not await self._ledger.claim_execution(
                decided.approval_id, self._dispatcher_id
            ):
                logger.info(f"Call {record.call_id} approved but claimed by another dispatcher")
                result = InvocationResult(
                    call_id=record.call_id,
                    tool_name=record.tool_name,
                    status=InvocationStatus.executed_elsewhere,
                    approval=decided,
                    note=decided.note,
                )
            elif decided.decision == ApprovalDecision.approved:
                exec_ctx = ExecutionContext(record.call_id, record.tool_name, context, approval=decided)
                try:
                    output = await self._executor.run(descriptor.name, arguments, exec_ctx)
                except Exception as e:
                    logger.warning(f"Approved tool {descriptor.name} failed (call_id={record.call_id}): {e}")
                    outcome.set_exception(_execution_failed(descriptor.name, record.call_id, e))
                    return
                result = InvocationResult(
                    call_id=record.call_id,
                    tool_name=record.tool_name,
                    status=InvocationStatus.completed,
                    output=output,
                    approval=decided,
                    note=decided.note,
                )
            else:
                logger.info(f"Call {record.call_id} denied by {decided.decided_by}: {decided.note}")
                result = InvocationResult(
                    call_id=record.call_id,
                    tool_name=record.tool_name,
                    status=InvocationStatus.denied,
                    approval=decided,
                    note=decided.note,
                )
            outcome.set_result(result)
        except asyncio.CancelledError:
            outcome.cancel()
            raise
        except Exception as e:
            logger.error(f"Continuation for call {record.call_id} failed: {e}")
            if not outcome.done():
                outcome.set_exception(e)
        finally:
            self._inflight.pop(record.call_id, None)
            if outcome.done() and not outcome.cancelled():
                self._remember(record.call_id, outcome)
