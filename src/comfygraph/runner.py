from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Optional, Union

from .client import ComfyApiClient
from .errors import ComfyApiError
from .events import ExecutingEvent, ExecutionErrorEvent, ImageDataEvent
from .graph import Graph
from .nodes import (CheckpointLoaderSimpleNode, CLIPTextEncodeNode, EmptyLatentImageNode, KSamplerNode,
                    SaveImageWebsocketNode, VAEDecodeNode)
from .schema import ChoiceInput

logger = logging.getLogger(__name__)


async def prompt_for_image(client: ComfyApiClient, prompt: Union[Graph, Mapping[str, Any]],
                           image_node_id: str) -> bytes:
    """Queue `prompt` and wait for the image sent while `image_node_id` is executing.

    Execution errors that arrive before the server has answered the queue
    request are held back and matched once the prompt id is known. The wait
    fails when the client's connection closes first.
    """
    loop = asyncio.get_running_loop()
    result: asyncio.Future = loop.create_future()
    state = {"node": None, "prompt_id": None}
    early_errors: List[ExecutionErrorEvent] = []

    def fail(event: ExecutionErrorEvent) -> None:
        if not result.done():
            result.set_exception(ComfyApiError(
                f"Execution of prompt {event.prompt_id} failed in {event.node_type} node "
                f"{event.node_id}: {event.exception_message}"))

    def on_executing(event: ExecutingEvent) -> None:
        state["node"] = event.node

    def on_image(event: ImageDataEvent) -> None:
        if state["node"] == image_node_id and not result.done():
            result.set_result(event.data)

    def on_error(event: ExecutionErrorEvent) -> None:
        if state["prompt_id"] is None:
            early_errors.append(event)
        elif event.prompt_id == state["prompt_id"]:
            fail(event)

    client.add_event_listener("executing", on_executing)
    client.add_event_listener("imagedata", on_image)
    client.add_event_listener("executionerror", on_error)
    closed = asyncio.ensure_future(client.wait_closed())
    try:
        response = await client.queue_prompt(prompt)
        state["prompt_id"] = response.prompt_id
        for event in early_errors:
            if event.prompt_id == response.prompt_id:
                fail(event)
        await asyncio.wait([result, closed], return_when=asyncio.FIRST_COMPLETED)
        if not result.done():
            closed.result()
            raise ComfyApiError(f"Connection closed before node {image_node_id} sent an image")
        return result.result()
    finally:
        closed.cancel()
        client.remove_event_listener("executing", on_executing)
        client.remove_event_listener("imagedata", on_image)
        client.remove_event_listener("executionerror", on_error)


async def get_checkpoints(client: ComfyApiClient) -> List[str]:
    schemas = await client.get_object_info()
    loader = schemas.get(CheckpointLoaderSimpleNode.class_type)
    info = loader.get_input("ckpt_name") if loader is not None else None
    if not isinstance(info, ChoiceInput):
        raise ComfyApiError("Server does not list any checkpoints")
    return info.values


def build_text_to_image_graph(checkpoint: str, positive: str, negative: str = "", *,
                              width: int = 512, height: int = 512, seed: int = 0, steps: int = 20,
                              cfg: float = 8.0, sampler_name: str = "euler", scheduler: str = "normal",
                              denoise: float = 1.0, image_node_id: Optional[str] = "IMAGE") -> Graph:
    """Checkpoint -> two text encodes -> KSampler -> VAE decode -> websocket image."""
    graph = Graph()

    ckpt = graph.add_node(CheckpointLoaderSimpleNode())
    ckpt.ckpt_name.value = checkpoint

    positive_clip = graph.add_node(CLIPTextEncodeNode())
    positive_clip.text.value = positive
    positive_clip.clip.connect_to(ckpt.clip)

    negative_clip = graph.add_node(CLIPTextEncodeNode())
    negative_clip.text.value = negative
    negative_clip.clip.connect_to(ckpt.clip)

    latent = graph.add_node(EmptyLatentImageNode())
    latent.connect_all({"width": width, "height": height, "batch_size": 1})

    sampler = graph.add_node(KSamplerNode())
    sampler.connect_all({
        "seed": seed, "steps": steps, "cfg": cfg, "sampler_name": sampler_name,
        "scheduler": scheduler, "denoise": denoise,
        "model": ckpt.model,
        "positive": positive_clip.conditioning,
        "negative": negative_clip.conditioning,
        "latent_image": latent.latent,
    })

    decode = graph.add_node(VAEDecodeNode())
    decode.samples.connect_to(sampler.latent)
    decode.vae.connect_to(ckpt.vae)

    image = graph.add_node(SaveImageWebsocketNode(), image_node_id)
    image.images.connect_to(decode.image)
    return graph
