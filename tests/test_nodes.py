import logging

from comfygraph.graph import GenericNode, Graph, InputRef, OutputRef
from comfygraph.nodes import (BASIC_NODES, CheckpointLoaderSimpleNode, CLIPTextEncodeNode, KSamplerNode,
                              make_node_class)
from comfygraph.schema import parse_node_schema

def test_typed_and_generic_nodes_serialize_alike():
    typed, generic = Graph(), Graph()
    for g, ckpt, clip in ((typed, CheckpointLoaderSimpleNode(), CLIPTextEncodeNode()),
                          (generic, GenericNode("CheckpointLoaderSimple"), GenericNode("CLIPTextEncode"))):
        g.add_node(ckpt)
        g.add_node(clip)
        ckpt.get_input("ckpt_name").value = "sd15.safetensors"
        clip.get_input("text").value = "a bottle"
        clip.get_input("clip").connect_to(ckpt.output_ref(1))
    assert typed.to_api_prompt() == generic.to_api_prompt()

def test_typed_accessors():
    g = Graph()
    ckpt = g.add_node(CheckpointLoaderSimpleNode())
    sampler = g.add_node(KSamplerNode(), "KSAMPLER")
    assert isinstance(sampler.seed, InputRef)
    sampler.seed.value = 595944585462224
    sampler.model.connect_to(ckpt.model)
    assert ckpt.vae == OutputRef(source_node_id="0", source_node_output_index=2)
    assert sampler.latent == OutputRef(source_node_id="KSAMPLER", source_node_output_index=0)
    assert g.to_api_prompt()["KSAMPLER"]["inputs"] == {"seed": 595944585462224, "model": ["0", 0]}

def test_basic_nodes_registry():
    assert BASIC_NODES["KSampler"] is KSamplerNode
    assert set(BASIC_NODES) == {"KSampler", "CheckpointLoaderSimple", "EmptyLatentImage",
                                "CLIPTextEncode", "VAEDecode", "SaveImageWebsocket"}

def test_make_node_class(schemas):
    cls = make_node_class(schemas["CheckpointLoaderSimple"])
    assert cls.__name__ == "CheckpointLoaderSimpleNode"
    assert cls.class_type == "CheckpointLoaderSimple"
    g = Graph()
    node = g.add_node(cls())
    node.ckpt_name.value = "sdxl_base.safetensors"
    assert node.CLIP == OutputRef(source_node_id="0", source_node_output_index=1)
    assert g.to_api_prompt()["0"]["class_type"] == "CheckpointLoaderSimple"

def test_make_node_class_skips_clashing_names(caplog):
    schema = parse_node_schema("Odd Node", {
        "input": {"required": {"inputs": ["INT"], "id": ["INT"], "upscale-by": ["FLOAT"]}},
        "output": ["IMAGE"], "output_is_list": [False], "output_name": ["upscale_by"], "name": "Odd Node",
    })
    with caplog.at_level(logging.WARNING):
        cls = make_node_class(schema)
    node = cls()
    assert isinstance(node.upscale_by, InputRef)
    assert node.inputs == {}
    assert cls.__name__ == "Odd_NodeNode"
    assert "Skipping accessor inputs" in caplog.text
    assert "Skipping accessor upscale_by" in caplog.text
