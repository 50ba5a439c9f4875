"""
Interaction manager for Blockcraft.

The InteractionManager is the single entry point for the UI layer. It
validates interaction requests, dispatches them to the merger, splitter
or converter (grouping and rearranging are handled here), keeps a
bounded history of results and notifies event listeners.
"""

import logging
import threading
import time
import uuid
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Union

import pydantic

from ..config import config
from ..content import generate_block_id
from ..errors import ListenerError
from ..models.blocks import Block
from ..models.changes import Change, ChangeAction, TransformResult, ValidationResult
from ..models.interactions import (
    InteractionOptions,
    InteractionOutcome,
    InteractionRequest,
    InteractionResult,
    InteractionType,
)
from .converter import BlockConverter
from .merger import BlockMerger
from .splitter import BlockSplitter

INTERACTION_COMPLETED = "interaction:completed"
INTERACTION_ERROR = "interaction:error"

# Metadata keys written by create_group and removed by disband_group.
GROUP_METADATA_KEYS = ("isGrouped", "groupId", "groupType", "groupIndex", "totalInGroup")

Listener = Callable[[InteractionResult], Any]


class InteractionManager:
    """
    Coordinates block interactions and records their outcomes.
    """

    def __init__(self, merger: Optional[BlockMerger] = None, splitter: Optional[BlockSplitter] = None,
                 converter: Optional[BlockConverter] = None, max_history_size: Optional[int] = None):
        """
        Initialize the interaction manager.

        Args:
            merger: Merger to delegate to (a default one is created if omitted)
            splitter: Splitter to delegate to
            converter: Converter to delegate to
            max_history_size: Number of results kept in history (defaults to config value)
        """
        self.merger = merger if merger is not None else BlockMerger()
        self.splitter = splitter if splitter is not None else BlockSplitter()
        self.converter = converter if converter is not None else BlockConverter()

        size = max_history_size if max_history_size is not None else config.max_history_size
        self.max_history_size = max(int(size), 0)
        self._history: Deque[InteractionResult] = deque(maxlen=self.max_history_size)
        self._history_lock = threading.Lock()
        self._listeners: Dict[str, List[Listener]] = {}

        self._dispatch: Dict[InteractionType, Callable[[InteractionRequest], TransformResult]] = {
            InteractionType.MERGE: self._run_merge,
            InteractionType.SPLIT: self._run_split,
            InteractionType.CONVERT: self._run_convert,
            InteractionType.REARRANGE: self._run_rearrange,
            InteractionType.GROUP: self._run_group,
            InteractionType.UNGROUP: self._run_ungroup,
        }

        logging.debug(f"InteractionManager initialized (history size {self.max_history_size})")

    # ===== Execution =====

    def execute_interaction(self, request: Union[InteractionRequest, Dict[str, Any]]) -> InteractionResult:
        """
        Validate and execute one interaction.

        Invalid requests fail without touching history or listeners.
        Everything else is recorded in history and reported to listeners
        as ``interaction:completed`` or ``interaction:error``.

        Args:
            request: An InteractionRequest, or its dict form (camelCase or snake_case keys)

        Returns:
            The InteractionResult; this method never raises
        """
        start_time = time.perf_counter()
        interaction_id = uuid.uuid4().hex

        try:
            request = self._coerce_request(request)
        except pydantic.ValidationError as e:
            raw_type = request.get("type") if isinstance(request, dict) else None
            logging.warning(f"Rejected malformed interaction request: {e}")
            return InteractionResult(
                id=interaction_id,
                type=str(raw_type or ""),
                result=InteractionOutcome.FAILED,
                error=f"Invalid interaction request: {e}",
                duration=self._elapsed_ms(start_time)
            )

        try:
            validation = self.validate_interaction(request)
        except Exception as e:
            logging.error(f"Validation of interaction {request.type} failed unexpectedly: {e}", exc_info=True)
            return InteractionResult(
                id=interaction_id,
                type=request.type,
                result=InteractionOutcome.FAILED,
                error=str(e),
                duration=self._elapsed_ms(start_time)
            )

        if not validation.is_valid:
            logging.info(f"Interaction {request.type} rejected: {validation.error}")
            return InteractionResult(
                id=interaction_id,
                type=request.type,
                result=InteractionOutcome.FAILED,
                error=validation.error,
                duration=self._elapsed_ms(start_time)
            )

        try:
            outcome = self._dispatch[InteractionType(request.type)](request)
            result = InteractionResult(
                id=interaction_id,
                type=request.type,
                result=InteractionOutcome.SUCCESS if outcome.success else InteractionOutcome.FAILED,
                data=outcome.data,
                changes=outcome.changes,
                error=outcome.error,
                duration=self._elapsed_ms(start_time)
            )
        except Exception as e:
            logging.error(f"Interaction {request.type} failed unexpectedly: {e}", exc_info=True)
            result = InteractionResult(
                id=interaction_id,
                type=request.type,
                result=InteractionOutcome.FAILED,
                error=str(e),
                duration=self._elapsed_ms(start_time)
            )

        self._add_to_history(result)

        if result.succeeded:
            logging.info(f"Interaction {result.type} completed with {len(result.changes)} changes "
                         f"in {result.duration:.2f}ms")
            self.emit(INTERACTION_COMPLETED, result)
        else:
            logging.info(f"Interaction {result.type} failed: {result.error}")
            self.emit(INTERACTION_ERROR, result)

        return result

    async def execute_interaction_async(self,
                                        request: Union[InteractionRequest, Dict[str, Any]]) -> InteractionResult:
        """Awaitable form of execute_interaction for hosts running an event loop."""
        return self.execute_interaction(request)

    @staticmethod
    def _coerce_request(request: Union[InteractionRequest, Dict[str, Any]]) -> InteractionRequest:
        if isinstance(request, InteractionRequest):
            return request
        return InteractionRequest.model_validate(request)

    @staticmethod
    def _elapsed_ms(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000

    def validate_interaction(self, request: InteractionRequest) -> ValidationResult:
        """
        Check a request before it is executed.

        Args:
            request: The request to check

        Returns:
            ValidationResult; type-specific checks come from the merger,
            splitter and converter
        """
        if not request.type:
            return ValidationResult.invalid("Interaction type is required")

        try:
            interaction_type = InteractionType(request.type)
        except ValueError:
            return ValidationResult.invalid(f"Unknown interaction type: {request.type}")

        if not request.source_blocks:
            return ValidationResult.invalid("At least one source block is required")

        if interaction_type == InteractionType.MERGE:
            return self.merger.validate_merge(request.source_blocks, request.target_block)

        if interaction_type == InteractionType.SPLIT:
            return self.splitter.validate_split(request.source_blocks[0], request.options)

        if interaction_type == InteractionType.CONVERT:
            return self.converter.validate_convert(request.source_blocks, request.options.target_type)

        if interaction_type == InteractionType.REARRANGE:
            anchor_id = self._rearrange_anchor(request)
            if not anchor_id:
                return ValidationResult.invalid("Rearrange requires a target block or after_block_id")
            if any(block.id == anchor_id for block in request.source_blocks):
                return ValidationResult.invalid("Cannot move blocks after one of themselves")

        return ValidationResult.ok()

    # ===== Dispatch =====

    def _run_merge(self, request: InteractionRequest) -> TransformResult:
        return self.merger.merge(request.source_blocks, request.target_block, request.options)

    def _run_split(self, request: InteractionRequest) -> TransformResult:
        # Split always acts on exactly one block.
        return self.splitter.split(request.source_blocks[0], request.options)

    def _run_convert(self, request: InteractionRequest) -> TransformResult:
        return self.converter.convert(request.source_blocks, request.options.target_type, request.options)

    def _run_rearrange(self, request: InteractionRequest) -> TransformResult:
        return self.rearrange(request.source_blocks, self._rearrange_anchor(request))

    def _run_group(self, request: InteractionRequest) -> TransformResult:
        return self.create_group(request.source_blocks, request.options)

    def _run_ungroup(self, request: InteractionRequest) -> TransformResult:
        return self.disband_group(request.source_blocks, request.options)

    @staticmethod
    def _rearrange_anchor(request: InteractionRequest) -> Optional[str]:
        if request.target_block is not None:
            return request.target_block.id
        return request.options.after_block_id

    # ===== Local operations =====

    def create_group(self, blocks: Sequence[Block],
                     options: Union[InteractionOptions, Dict[str, Any], None] = None) -> TransformResult:
        """
        Tag blocks as members of one group.

        No block is created or removed; each block gets an update carrying
        the group metadata.

        Args:
            blocks: Blocks to group, in group order
            options: Group options (group_type, default "column")

        Returns:
            TransformResult with one update per block
        """
        opts = InteractionOptions.coerce(options)
        group_id = generate_block_id("group")
        group_type = opts.group_type or "column"

        changes = []
        for index, block in enumerate(blocks):
            metadata = dict(block.metadata)
            metadata.update({
                "isGrouped": True,
                "groupId": group_id,
                "groupType": group_type,
                "groupIndex": index,
                "totalInGroup": len(blocks)
            })
            changes.append(Change(
                action=ChangeAction.UPDATE,
                block_id=block.id,
                old_metadata=dict(block.metadata),
                metadata=metadata
            ))

        return TransformResult(
            success=True,
            strategy="group",
            data={"groupId": group_id, "groupType": group_type, "memberCount": len(blocks)},
            changes=changes,
            source_types=[block.type for block in blocks]
        )

    def disband_group(self, blocks: Sequence[Block],
                      options: Union[InteractionOptions, Dict[str, Any], None] = None) -> TransformResult:
        """Remove the group metadata from each block."""
        changes = [
            Change(
                action=ChangeAction.UPDATE,
                block_id=block.id,
                old_metadata=dict(block.metadata),
                metadata={k: v for k, v in block.metadata.items() if k not in GROUP_METADATA_KEYS}
            )
            for block in blocks
        ]

        return TransformResult(
            success=True,
            strategy="ungroup",
            data={"ungroupedBlocks": len(blocks)},
            changes=changes,
            source_types=[block.type for block in blocks]
        )

    def rearrange(self, blocks: Sequence[Block], after_block_id: str) -> TransformResult:
        """
        Move blocks, in order, to just after ``after_block_id``.

        Each block is deleted and re-inserted unchanged, so ids are kept.

        Args:
            blocks: Blocks to move
            after_block_id: The block they should follow

        Returns:
            TransformResult with a delete and an insert per block
        """
        changes = []
        previous_id = after_block_id
        for block in blocks:
            changes.append(Change.delete(block.id))
            changes.append(Change.insert(block, after_block_id=previous_id))
            previous_id = block.id

        return TransformResult(
            success=True,
            strategy="rearrange",
            data={"movedBlocks": len(blocks), "afterBlockId": after_block_id},
            changes=changes,
            source_types=[block.type for block in blocks]
        )

    # ===== History =====

    def _add_to_history(self, result: InteractionResult) -> None:
        with self._history_lock:
            self._history.appendleft(result)

    def get_history(self, filters: Optional[Dict[str, Any]] = None) -> List[InteractionResult]:
        """
        Get recorded results, newest first.

        Args:
            filters: Optional ``type``, ``result``, ``since`` and ``until``
                (datetimes or ISO 8601 strings, inclusive)

        Returns:
            The matching results
        """
        filters = filters or {}
        with self._history_lock:
            history = list(self._history)

        if filters.get("type"):
            wanted_type = str(filters["type"])
            history = [item for item in history if item.type == wanted_type]

        if filters.get("result"):
            wanted_result = str(filters["result"])
            history = [item for item in history if item.result.value == wanted_result]

        if filters.get("since"):
            since = self._as_datetime(filters["since"])
            history = [item for item in history if item.timestamp >= since]

        if filters.get("until"):
            until = self._as_datetime(filters["until"])
            history = [item for item in history if item.timestamp <= until]

        return history

    @staticmethod
    def _as_datetime(value: Union[datetime, str]) -> datetime:
        """Parse a filter bound; naive values are taken as local time."""
        if not isinstance(value, datetime):
            value = datetime.fromisoformat(str(value))
        if value.tzinfo is None:
            value = value.astimezone()
        return value

    def get_stats(self) -> Dict[str, Any]:
        """
        Aggregate the recorded history.

        Returns:
            Dictionary with total, by_type, by_result and average_duration (ms)
        """
        with self._history_lock:
            history = list(self._history)

        by_type: Dict[str, int] = {}
        by_result: Dict[str, int] = {}
        for item in history:
            by_type[item.type] = by_type.get(item.type, 0) + 1
            by_result[item.result.value] = by_result.get(item.result.value, 0) + 1

        total = len(history)
        return {
            "total": total,
            "by_type": by_type,
            "by_result": by_result,
            "average_duration": sum(item.duration for item in history) / total if total else 0.0
        }

    def clear_history(self) -> None:
        with self._history_lock:
            self._history.clear()

    # ===== Events =====

    def on(self, event: str, callback: Listener) -> None:
        """Register ``callback`` for ``event``."""
        self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Listener) -> bool:
        """
        Unregister a callback.

        Returns:
            True if the callback was registered
        """
        callbacks = self._listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)
            return True
        return False

    def emit(self, event: str, data: Any) -> List[ListenerError]:
        """
        Call every listener of ``event`` with ``data``.

        A failing listener is logged and does not stop delivery to the
        others.

        Returns:
            One ListenerError per failing listener
        """
        errors = []
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(data)
            except Exception as e:
                error = ListenerError(event, e, callback)
                logging.error(str(error), exc_info=e)
                errors.append(error)
        return errors

    def destroy(self) -> None:
        """Drop all listeners and history."""
        self._listeners.clear()
        self.clear_history()
        logging.debug("InteractionManager destroyed")
