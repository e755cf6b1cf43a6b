import json
import os

import pytest

from specasm import FileSystemLoader, LoadError, MemoryLoader
from specasm.loader import env_search_paths


def test_arch_resolves_json_suffix(tmp_path, tiny_arch):
    (tmp_path / "tiny.json").write_text(json.dumps(tiny_arch), encoding="utf-8")
    loader = FileSystemLoader([tmp_path])
    assert loader.load_arch("tiny")["width"] == 8
    assert loader.load_arch("tiny.json")["width"] == 8


def test_arch_search_order(tmp_path, tiny_arch):
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.mkdir()
    second.mkdir()
    (second / "tiny.json").write_text(json.dumps(tiny_arch), encoding="utf-8")
    other = dict(tiny_arch, width=16)
    (first / "tiny.json").write_text(json.dumps(other), encoding="utf-8")
    assert FileSystemLoader([first, second]).load_arch("tiny")["width"] == 16
    assert FileSystemLoader([second, first]).load_arch("tiny")["width"] == 8


def test_missing_arch_raises(tmp_path):
    with pytest.raises(LoadError, match="Could not load arch file 'gone.json'"):
        FileSystemLoader([tmp_path]).load_arch("gone")


def test_invalid_arch_documents(tmp_path):
    (tmp_path / "broken.json").write_text("{", encoding="utf-8")
    (tmp_path / "empty.json").write_text("{}", encoding="utf-8")
    loader = FileSystemLoader([tmp_path])
    with pytest.raises(LoadError, match="invalid JSON"):
        loader.load_arch("broken")
    with pytest.raises(LoadError, match='"vars" and "rules"'):
        loader.load_arch("empty")


def test_include_and_module_lookup(tmp_path):
    (tmp_path / "lib.inc").write_text("nop\n", encoding="utf-8")
    (tmp_path / "modules").mkdir()
    (tmp_path / "modules" / "math.asm").write_text("sq: nop\n", encoding="utf-8")
    loader = FileSystemLoader([tmp_path])
    assert loader.load_include("lib.inc") == "nop\n"
    assert loader.load_module("math") == "sq: nop\n"
    with pytest.raises(LoadError):
        loader.load_include("math.asm")


def test_absolute_include_path(tmp_path):
    target = tmp_path / "abs.asm"
    target.write_text("nop", encoding="utf-8")
    loader = FileSystemLoader([tmp_path / "elsewhere"])
    assert loader.load_include(str(target)) == "nop"


def test_default_search_path_is_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert FileSystemLoader().search_paths == [tmp_path.resolve()]


def test_env_search_paths():
    environ = {"SPECASM_PATH": os.pathsep.join(["/a", "", "/b"])}
    assert [str(p) for p in env_search_paths(environ)] == [os.path.normpath("/a"), os.path.normpath("/b")]
    assert env_search_paths({}) == []


def test_memory_loader():
    loader = MemoryLoader(archs={"x": {"vars": {}, "rules": []}}, includes={"i": "nop"})
    assert loader.load_arch("x") == {"vars": {}, "rules": []}
    assert loader.load_include("i") == "nop"
    with pytest.raises(LoadError, match="Could not load module 'm': no such document"):
        loader.load_module("m")
