"""Single-node and bulk regeneration over the active view.

The bulk path regenerates a start node and everything reachable from it,
ancestors before descendants, one node at a time:

1. Plan: DFS reverse postorder from the start node, start first, deduplicated.
2. Announce the run (``BulkStarted``) and expose the plan for highlighting.
3. For each planned node: re-read it from the live view merged with the
   pending-writes buffer, mark it generating, build its context, dispatch a
   ``recreate`` request and buffer the text. Failures are classified and
   recorded on the node; the run always moves on.
4. Flush the buffer every ``flush_interval`` entries and once at the end,
   then settle every planned node in a single write.
5. Announce completion (``BulkCompleted``) and ask the UI to focus the start
   node. An abandoned run still settles its nodes and announces completion
   before the exception propagates.

Only a missing start node aborts a run, before anything is announced.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dialogloom.generation.dispatcher import GenerateMode
from dialogloom.generation.errors import GenerationError, GenerationFailure
from dialogloom.generation.events import (
    BulkCompleted,
    BulkStarted,
    EventChannel,
    FocusRequested,
    NullProgressReporter,
)
from dialogloom.generation.registry import NodeTypeRegistry
from dialogloom.generation.state import NodeProcessingState, RegenerationState
from dialogloom.graph.context import (
    MAX_SERIALIZED_CONTEXT_CHARS,
    build_context,
    find_siblings,
)
from dialogloom.graph.errors import NodeNotFoundError
from dialogloom.graph.models import NodeStatus
from dialogloom.graph.traversal import regeneration_plan
from dialogloom.observability.logging import generate_run_id, get_logger, run_context

if TYPE_CHECKING:
    from collections.abc import Collection, Mapping

    from dialogloom.generation.dispatcher import GenerationDispatcher
    from dialogloom.generation.events import ProgressReporter
    from dialogloom.graph.context import DialogContext
    from dialogloom.graph.models import DialogEdge, DialogNode
    from dialogloom.graph.views import ActiveView

log = get_logger(__name__)

DEFAULT_FLUSH_INTERVAL = 3
DEFAULT_INTER_NODE_DELAY = 0.05


@dataclass
class NodeGenerationResult:
    """Outcome of a single-node request.

    Exactly one of ``text``, ``failure`` and ``error`` is set, unless the
    node was ``skipped`` because its type has no generated text.
    """

    node_id: str
    text: str | None = None
    failure: GenerationFailure | None = None
    error: NodeNotFoundError | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.text is not None


@dataclass
class BulkRunResult:
    """Summary of one bulk regeneration run.

    Attributes:
        plan: Node ids in processing order, start node first.
        succeeded: Nodes that received new text.
        failed: Classified failure per node that could not be generated.
        skipped: Container nodes that were reset without dispatch.
        missing_count: Planned nodes absent from the live view when reached.
        duration_seconds: Wall-clock time of the run.
    """

    plan: list[str]
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, GenerationFailure] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    missing_count: int = 0
    duration_seconds: float = 0.0

    @property
    def start_id(self) -> str:
        return self.plan[0]

    @property
    def timed_out(self) -> list[str]:
        return [node_id for node_id, failure in self.failed.items() if failure.is_timeout]


def progress_percent(completed: int, total: int) -> int:
    """Progress as ``round(completed / total * 100)``."""
    if total <= 0:
        return 100
    return round(completed / total * 100)


class RegenerationOrchestrator:
    """Runs generation requests against the active view.

    Args:
        view: Active view all reads and writes go through.
        dispatcher: Sends requests to the generation backend.
        registry: Node-type registry; identifies container types.
        events: Channel for lifecycle events.
        progress: User-visible progress channel.
        regeneration_state: Markers shared with the UI.
        flush_interval: Buffered texts that trigger a write during a bulk run.
        inter_node_delay: Seconds to wait after each node of a bulk run.
        context_char_limit: Length cap of the serialized context.
        context_max_depth: Optional hop limit for context walks.
        mark_pending_nodes: In bulk runs, show nodes that are still waiting
            for regeneration as placeholders in other nodes' context.
    """

    def __init__(
        self,
        view: ActiveView,
        dispatcher: GenerationDispatcher,
        *,
        registry: NodeTypeRegistry | None = None,
        events: EventChannel | None = None,
        progress: ProgressReporter | None = None,
        regeneration_state: RegenerationState | None = None,
        flush_interval: int = DEFAULT_FLUSH_INTERVAL,
        inter_node_delay: float = DEFAULT_INTER_NODE_DELAY,
        context_char_limit: int = MAX_SERIALIZED_CONTEXT_CHARS,
        context_max_depth: int | None = None,
        mark_pending_nodes: bool = False,
    ) -> None:
        if flush_interval < 1:
            raise ValueError(f"flush_interval must be at least 1, got {flush_interval}")
        self._view = view
        self._dispatcher = dispatcher
        self._registry = registry if registry is not None else NodeTypeRegistry()
        self.events = events if events is not None else EventChannel()
        self._progress: ProgressReporter = progress or NullProgressReporter()
        self.regeneration_state = regeneration_state or RegenerationState()
        self._processing = NodeProcessingState(view)
        self._flush_interval = flush_interval
        self._inter_node_delay = inter_node_delay
        self._context_char_limit = context_char_limit
        self._context_max_depth = context_max_depth
        self._mark_pending_nodes = mark_pending_nodes

    @property
    def processing(self) -> NodeProcessingState:
        return self._processing

    def _not_found(self, node_id: str, context: str) -> NodeNotFoundError:
        error = NodeNotFoundError(
            node_id,
            available=[n.id for n in self._view.nodes],
            context=context,
        )
        log.error("node_not_found", node_id=node_id, context=context)
        self._progress.failure(str(error))
        return error

    def _build_context(
        self,
        node_id: str,
        nodes: list[DialogNode],
        edges: list[DialogEdge],
        ignore_connections: bool,
        placeholder_ids: Collection[str] = (),
    ) -> DialogContext:
        siblings = None if ignore_connections else find_siblings(node_id, nodes, edges)
        context = build_context(
            node_id,
            nodes,
            edges,
            isolate=ignore_connections,
            siblings=siblings,
            placeholder_ids=placeholder_ids,
            max_depth=self._context_max_depth,
            char_limit=self._context_char_limit,
        )
        if context is None:
            raise NodeNotFoundError(node_id, [n.id for n in nodes], context="context build")
        return context

    async def generate_node(
        self,
        node_id: str,
        mode: GenerateMode | str = GenerateMode.RECREATE,
        *,
        ignore_connections: bool = False,
        prompt: str | None = None,
        system_prompt: str | None = None,
        model_override: str | None = None,
    ) -> NodeGenerationResult:
        """Generate text for one node without the bulk machinery.

        Not-found is reported and returned in the result without touching
        the view. Generation failures land on the node as ``error`` or
        ``timeout`` and are returned in the result.

        Raises:
            ValueError: For ``regenerate_from_here`` (use
                :meth:`regenerate_from_here`) or a custom request without
                a prompt.
        """
        mode = GenerateMode(mode)
        if mode is GenerateMode.REGENERATE_FROM_HERE:
            raise ValueError("regenerate_from_here is a bulk operation; use regenerate_from_here()")
        if mode is GenerateMode.CUSTOM and not prompt:
            raise ValueError("custom mode requires a prompt")

        node = self._view.get_node(node_id)
        if node is None:
            return NodeGenerationResult(node_id, error=self._not_found(node_id, mode.value))

        if self._registry.is_container(node.type):
            log.debug("container_node_skipped", node_id=node_id, node_type=node.type)
            self._progress.message(f"Node {node_id} is a {node.type} and has no text to generate")
            return NodeGenerationResult(node_id, skipped=True)

        extra: dict[str, str] = {}
        if mode is GenerateMode.IMPROVE:
            extra["current_text"] = node.text
        elif mode is GenerateMode.CUSTOM:
            extra["prompt"] = prompt or ""
            if system_prompt:
                extra["system_prompt"] = system_prompt

        self.regeneration_state.set_processing(node_id)
        try:
            if node.status is NodeStatus.GENERATING:
                # Left over from an abandoned request
                self._processing.reset(node_id)
            self._processing.start(node_id)
            context = self._build_context(
                node_id, self._view.nodes, self._view.edges, ignore_connections
            )
            text = await self._dispatcher.generate(
                node.type,
                context,
                mode,
                extra,
                ignore_connections=ignore_connections,
                model_override=model_override,
            )
        except GenerationError as e:
            status = self._processing.fail(node_id, e.failure)
            self._progress.failure(f"{status.value.capitalize()} generating node {node_id}: {e}")
            return NodeGenerationResult(node_id, failure=e.failure)
        finally:
            self.regeneration_state.set_processing(None)

        self._processing.succeed(node_id, text)
        log.info("node_generated", node_id=node_id, mode=mode, chars=len(text))
        self._progress.success(f"Node {node_id} generated")
        return NodeGenerationResult(node_id, text=text)

    def _read_node(self, node_id: str, pending: Mapping[str, str]) -> DialogNode | None:
        node = self._view.get_node(node_id)
        if node is not None and node_id in pending:
            return node.model_copy(update={"text": pending[node_id]})
        return node

    def _merged_nodes(self, pending: Mapping[str, str]) -> list[DialogNode]:
        return [
            n.model_copy(update={"text": pending[n.id]}) if n.id in pending else n
            for n in self._view.nodes
        ]

    def _flush(self, pending: dict[str, str]) -> None:
        if not pending:
            return
        written = self._processing.apply_texts(pending)
        log.debug("bulk_batch_flushed", count=len(pending), written=len(written))
        pending.clear()

    async def regenerate_from_here(
        self,
        start_id: str,
        ignore_connections: bool = False,
    ) -> BulkRunResult:
        """Regenerate *start_id* and every node reachable from it.

        Args:
            start_id: Node the run starts from; always processed first.
            ignore_connections: Build every node's context in isolation.

        Returns:
            Summary of the run.

        Raises:
            NodeNotFoundError: If the start node is not in the active view.
                Nothing is announced or written in that case.
        """
        if self._view.get_node(start_id) is None:
            raise self._not_found(start_id, "regenerate from here")

        plan = regeneration_plan(start_id, self._view.edges)
        result = BulkRunResult(plan=plan)
        total = len(plan)
        started = time.monotonic()

        with run_context(generate_run_id(), start=start_id):
            log.info(
                "bulk_regeneration_started",
                start=start_id,
                count=total,
                ignore_connections=ignore_connections,
            )
            self.regeneration_state.begin_bulk(plan)
            self.events.emit(BulkStarted(start_id=start_id, node_ids=tuple(plan)))
            self._progress.message(f"Regenerating {total} nodes...")

            generated: dict[str, str] = {}
            pending: dict[str, str] = {}
            try:
                for index, node_id in enumerate(plan):
                    await self._regenerate_one(
                        node_id,
                        result,
                        generated,
                        pending,
                        ignore_connections,
                        remaining=plan[index + 1 :],
                    )
                    self._progress.progress(progress_percent(index + 1, total))
                    await asyncio.sleep(self._inter_node_delay)
            except BaseException:
                log.warning(
                    "bulk_regeneration_aborted",
                    start=start_id,
                    succeeded=len(result.succeeded),
                )
                raise
            finally:
                # Runs on abort too, so no planned node is left generating
                self._flush(pending)
                self._processing.settle(plan, generated)
                if result.missing_count:
                    log.info("bulk_nodes_missing", count=result.missing_count)
                self.regeneration_state.end_bulk()
                self.events.emit(BulkCompleted(count=total))

            self.events.emit(FocusRequested(node_id=start_id))

            result.duration_seconds = time.monotonic() - started
            log.info(
                "bulk_regeneration_completed",
                count=total,
                succeeded=len(result.succeeded),
                failed=len(result.failed),
                skipped=len(result.skipped),
                missing=result.missing_count,
                duration_seconds=round(result.duration_seconds, 3),
            )

        if result.failed:
            self._progress.success(
                f"Regenerated {len(result.succeeded)} of {total} nodes, "
                f"{len(result.failed)} failed"
            )
        else:
            self._progress.success(f"All {total} nodes regenerated successfully!")
        return result

    async def _regenerate_one(
        self,
        node_id: str,
        result: BulkRunResult,
        generated: dict[str, str],
        pending: dict[str, str],
        ignore_connections: bool,
        remaining: Collection[str],
    ) -> None:
        node = self._read_node(node_id, pending)
        if node is None:
            result.missing_count += 1
            log.debug("bulk_node_missing", node_id=node_id)
            return

        self.regeneration_state.set_processing(node_id)
        try:
            if node.status is NodeStatus.GENERATING:
                # Left over from an abandoned request
                self._processing.reset(node_id)
            self._processing.start(node_id)

            if self._registry.is_container(node.type):
                self._processing.reset(node_id)
                result.skipped.append(node_id)
                log.debug("container_node_skipped", node_id=node_id, node_type=node.type)
                return

            context = self._build_context(
                node_id,
                self._merged_nodes(pending),
                self._view.edges,
                ignore_connections,
                placeholder_ids=remaining if self._mark_pending_nodes else (),
            )
            text = await self._dispatcher.generate(
                node.type,
                context,
                GenerateMode.RECREATE,
                ignore_connections=ignore_connections,
            )
        except GenerationError as e:
            status = self._processing.fail(node_id, e.failure)
            result.failed[node_id] = e.failure
            label = "Timeout" if status is NodeStatus.TIMEOUT else "Error"
            self._progress.failure(f"{label} generating node {node_id}")
            return
        finally:
            self.regeneration_state.set_processing(None)

        self._processing.succeed(node_id)
        generated[node_id] = text
        pending[node_id] = text
        result.succeeded.append(node_id)
        if len(pending) >= self._flush_interval:
            self._flush(pending)

    async def generate_empty_nodes(
        self, ignore_connections: bool = False
    ) -> list[NodeGenerationResult]:
        """Recreate the text of every blank node in the active view, one by one."""
        targets = [
            n.id
            for n in self._view.nodes
            if n.is_blank
            and self._registry.get(n.type).ai_enabled
            and not self._registry.is_container(n.type)
        ]
        if not targets:
            self._progress.message("No empty nodes found")
            return []

        log.info("empty_nodes_generation_started", count=len(targets))
        self._progress.message(f"Generating text for {len(targets)} empty nodes...")

        results: list[NodeGenerationResult] = []
        for index, node_id in enumerate(targets):
            results.append(
                await self.generate_node(node_id, ignore_connections=ignore_connections)
            )
            self._progress.progress(progress_percent(index + 1, len(targets)))
            await asyncio.sleep(self._inter_node_delay)

        failed = sum(1 for r in results if r.failure is not None)
        log.info("empty_nodes_generation_completed", count=len(results), failed=failed)
        return results
