"""Typed wrappers for the nodes of a basic text-to-image prompt.

The wrappers only add named accessors over `Node.get_input` and
`Node.output_ref`; serialization always goes through the generic model.
`make_node_class` builds the same kind of wrapper at runtime from an
object info schema.
"""
from __future__ import annotations

import logging
import re
from typing import Dict, Type

from .graph import InputRef, Node, OutputRef
from .schema import NodeTypeSchema, iter_node_inputs

logger = logging.getLogger(__name__)


def _input(name: str) -> property:
    def getter(self: Node) -> InputRef:
        return self.get_input(name)
    return property(getter, doc=f"Input `{name}`")


def _output(index: int, name: str = "") -> property:
    def getter(self: Node) -> OutputRef:
        return self.output_ref(index)
    return property(getter, doc=f"Output {index} {name}".rstrip())


class KSamplerNode(Node):
    class_type = "KSampler"

    model = _input("model")
    seed = _input("seed")
    steps = _input("steps")
    cfg = _input("cfg")
    sampler_name = _input("sampler_name")
    scheduler = _input("scheduler")
    positive = _input("positive")
    negative = _input("negative")
    latent_image = _input("latent_image")
    denoise = _input("denoise")

    latent = _output(0, "LATENT")


class CheckpointLoaderSimpleNode(Node):
    class_type = "CheckpointLoaderSimple"

    ckpt_name = _input("ckpt_name")

    model = _output(0, "MODEL")
    clip = _output(1, "CLIP")
    vae = _output(2, "VAE")


class EmptyLatentImageNode(Node):
    class_type = "EmptyLatentImage"

    width = _input("width")
    height = _input("height")
    batch_size = _input("batch_size")

    latent = _output(0, "LATENT")


class CLIPTextEncodeNode(Node):
    class_type = "CLIPTextEncode"

    clip = _input("clip")
    text = _input("text")

    conditioning = _output(0, "CONDITIONING")


class VAEDecodeNode(Node):
    class_type = "VAEDecode"

    samples = _input("samples")
    vae = _input("vae")

    image = _output(0, "IMAGE")


class SaveImageWebsocketNode(Node):
    class_type = "SaveImageWebsocket"

    images = _input("images")


BASIC_NODES: Dict[str, Type[Node]] = {
    cls.class_type: cls
    for cls in (KSamplerNode, CheckpointLoaderSimpleNode, EmptyLatentImageNode,
                CLIPTextEncodeNode, VAEDecodeNode, SaveImageWebsocketNode)
}


_INSTANCE_ATTRS = {"inputs", "_id"}


def attribute_name(name: str) -> str:
    name = re.sub(r"\W", "_", name)
    if name[:1].isdigit():
        name = "_" + name
    return name


def make_node_class(schema: NodeTypeSchema) -> Type[Node]:
    """Build a `Node` subclass with one property per input and per output of `schema`.

    Inputs are exposed as `InputRef`s, outputs as `OutputRef`s, under the
    socket name with non-word characters replaced. A name that collides with
    an existing `Node` attribute or with an earlier socket is skipped.
    """
    namespace: Dict[str, object] = {"class_type": schema.name, "__doc__": schema.description or None}

    def add(attr: str, value: property) -> None:
        if hasattr(Node, attr) or attr in _INSTANCE_ATTRS or attr in namespace:
            logger.warning("Skipping accessor %s on node %s: name already taken", attr, schema.name)
            return
        namespace[attr] = value

    for name, _, _ in iter_node_inputs(schema):
        add(attribute_name(name), _input(name))
    for index, output in enumerate(schema.outputs):
        add(attribute_name(output.name), _output(index, output.type))

    return type(attribute_name(schema.name) + "Node", (Node,), namespace)
