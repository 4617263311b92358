import json
from pathlib import Path

import yaml
from typer.testing import CliRunner

from comfygraph.cli import app

runner = CliRunner()

def test_convert_to_file(tmp_path: Path, data_dir: Path):
    out = tmp_path / "prompt.json"
    result = runner.invoke(app, ["convert", str(data_dir / "clip_encode_with_ksampler.json"),
                                 str(data_dir / "object_info.json"), "--out", str(out)])
    assert result.exit_code == 0, result.output
    prompt = json.loads(out.read_text())
    assert prompt["0"]["class_type"] == "KSampler"
    assert prompt["0"]["inputs"]["positive"] == ["1", 0]

def test_convert_to_yaml(tmp_path: Path, data_dir: Path):
    out = tmp_path / "prompt.yaml"
    result = runner.invoke(app, ["convert", str(data_dir / "single_ksampler.json"),
                                 str(data_dir / "object_info.json"), "--out", str(out)])
    assert result.exit_code == 0, result.output
    assert yaml.safe_load(out.read_text())["0"]["inputs"]["steps"] == 20

def test_validate_reports_missing_inputs(data_dir: Path):
    result = runner.invoke(app, ["validate", str(data_dir / "single_ksampler.json"),
                                 str(data_dir / "object_info.json")])
    assert result.exit_code == 1
    assert "Validation Report" in result.output

def test_validate_api_prompt(tmp_path: Path):
    prompt = tmp_path / "prompt.json"
    prompt.write_text(json.dumps({
        "0": {"inputs": {"ckpt_name": "sd15.safetensors"}, "class_type": "CheckpointLoaderSimple", "_meta": {}},
        "1": {"inputs": {"clip": ["0", 1], "text": "a bottle"}, "class_type": "CLIPTextEncode", "_meta": {}},
    }))
    result = runner.invoke(app, ["validate", str(prompt)])
    assert result.exit_code == 0, result.output

def test_explain(data_dir: Path):
    result = runner.invoke(app, ["explain", str(data_dir / "clip_encode_with_ksampler.json"),
                                 str(data_dir / "object_info.json")])
    assert result.exit_code == 0, result.output
    assert "01. 1 [CLIPTextEncode]" in result.output
    assert "02. 0 [KSampler]" in result.output

def test_convert_reports_broken_links(tmp_path: Path, data_dir: Path):
    doc = json.loads((data_dir / "clip_encode_with_ksampler.json").read_text())
    doc["links"] = [[5, 9, 0, 0, 1, "CONDITIONING"]]
    broken = tmp_path / "broken.json"
    broken.write_text(json.dumps(doc))
    result = runner.invoke(app, ["convert", str(broken), str(data_dir / "object_info.json")])
    assert result.exit_code == 1
    assert "MissingLinkNodeError" in result.output

def test_explain_reports_cycles(tmp_path: Path):
    prompt = tmp_path / "cycle.json"
    prompt.write_text(json.dumps({
        "a": {"inputs": {"x": ["b", 0]}, "class_type": "A"},
        "b": {"inputs": {"x": ["a", 0]}, "class_type": "B"},
    }))
    result = runner.invoke(app, ["explain", str(prompt)])
    assert result.exit_code == 1
    assert "GraphCycleError" in result.output

def test_unparsable_document(tmp_path: Path):
    broken = tmp_path / "broken.json"
    broken.write_text("{not json")
    result = runner.invoke(app, ["validate", str(broken)])
    assert result.exit_code == 1
    assert "DocumentError" in result.output

def test_prompt_entry_without_class_type(tmp_path: Path):
    prompt = tmp_path / "prompt.json"
    prompt.write_text(json.dumps({"0": {"inputs": {}}}))
    result = runner.invoke(app, ["explain", str(prompt)])
    assert result.exit_code == 1
    assert "PromptError" in result.output
