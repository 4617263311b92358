"""Events delivered over the server's websocket."""
from __future__ import annotations

import logging
from typing import Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ImageDataEvent(BaseModel):
    type: Literal["imagedata"] = "imagedata"
    data: bytes
    mime_type: str = "image/png"


class ProgressEvent(BaseModel):
    type: Literal["progress"] = "progress"
    progress: int
    progress_max: int
    prompt_id: Optional[str] = None
    node: Optional[str] = None


class ExecutionStartEvent(BaseModel):
    type: Literal["executionstart"] = "executionstart"
    prompt_id: str


class ExecutionCachedEvent(BaseModel):
    type: Literal["executioncached"] = "executioncached"
    nodes: List[str]
    prompt_id: str


class ExecutionSuccessEvent(BaseModel):
    type: Literal["executionsuccess"] = "executionsuccess"
    prompt_id: str


class ExecutingEvent(BaseModel):
    type: Literal["executing"] = "executing"
    node: Optional[str] = None
    prompt_id: Optional[str] = None


class ExecutionErrorEvent(BaseModel):
    type: Literal["executionerror"] = "executionerror"
    prompt_id: str
    node_id: Optional[str] = None
    node_type: Optional[str] = None
    exception_type: Optional[str] = None
    exception_message: Optional[str] = None


class StatusEvent(BaseModel):
    type: Literal["status"] = "status"
    queue_remaining: int
    client_id: Optional[str] = None


ComfyEvent = Union[ImageDataEvent, ProgressEvent, ExecutionStartEvent, ExecutionCachedEvent,
                   ExecutionSuccessEvent, ExecutingEvent, ExecutionErrorEvent, StatusEvent]

EVENT_TYPES = ("imagedata", "progress", "executionstart", "executioncached",
               "executionsuccess", "executing", "executionerror", "status")

# binary frames start with an event type and an image format, 4 bytes each
BINARY_HEADER_SIZE = 8


def parse_binary_message(data: bytes) -> ImageDataEvent:
    return ImageDataEvent(data=data[BINARY_HEADER_SIZE:])


def parse_message(message: Mapping[str, Any]) -> Optional[ComfyEvent]:
    """Turn a JSON websocket message into an event; unknown types yield `None`."""
    kind = message.get("type")
    data = message.get("data") or {}

    if kind == "status":
        return StatusEvent(queue_remaining=data["status"]["exec_info"]["queue_remaining"],
                           client_id=data.get("sid"))
    if kind == "progress":
        return ProgressEvent(progress=data["value"], progress_max=data["max"],
                             prompt_id=data.get("prompt_id"), node=data.get("node"))
    if kind == "execution_start":
        return ExecutionStartEvent(prompt_id=data["prompt_id"])
    if kind == "execution_cached":
        return ExecutionCachedEvent(nodes=data.get("nodes", []), prompt_id=data["prompt_id"])
    if kind == "execution_success":
        return ExecutionSuccessEvent(prompt_id=data["prompt_id"])
    if kind == "executing":
        return ExecutingEvent(node=data.get("node"), prompt_id=data.get("prompt_id"))
    if kind == "execution_error":
        return ExecutionErrorEvent(prompt_id=data["prompt_id"], node_id=data.get("node_id"),
                                   node_type=data.get("node_type"),
                                   exception_type=data.get("exception_type"),
                                   exception_message=data.get("exception_message"))

    logger.debug("Ignoring websocket message of type %s", kind)
    return None
