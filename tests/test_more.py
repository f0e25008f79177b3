import pytest
from embedded_dict_file import (
    DictionaryFile,
    StrDictionaryFile,
    SerializationSettings,
    INT,
    BOOL,
    JSON,
    DuplicateKeyError,
    EncodeError,
    KeyNotFoundError,
    UseAfterDisposeError,
)

def read_lines(path):
    return path.read_text(encoding="utf-8").splitlines()

def test_duplicate_add_rejected(tmp_path):
    db_path = tmp_path / "kv.tsv"
    with StrDictionaryFile(str(db_path)) as d:
        d.add("a", "1")
        with pytest.raises(DuplicateKeyError):
            d.add("a", "2")
        assert dict(d.items()) == {"a": "1"}
    assert read_lines(db_path) == ["a\t1"]

def test_set_replaces_line(tmp_path):
    db_path = tmp_path / "kv.tsv"
    with StrDictionaryFile(str(db_path)) as d:
        d["k"] = "v1"
        d["k"] = "v2"
        assert d["k"] == "v2"
    assert read_lines(db_path) == ["k\tv2"]
    with StrDictionaryFile(str(db_path)) as d:
        assert dict(d.items()) == {"k": "v2"}

def test_set_moves_key_to_end(tmp_path):
    db_path = tmp_path / "kv.tsv"
    with StrDictionaryFile(str(db_path)) as d:
        d.add("a", "1")
        d.add("b", "2")
        d["a"] = "x"
        assert list(d) == ["b", "a"]
    assert read_lines(db_path) == ["b\t2", "a\tx"]

def test_add_then_remove_leaves_no_line(tmp_path):
    db_path = tmp_path / "kv.tsv"
    with StrDictionaryFile(str(db_path)) as d:
        d.add("keep", "1")
        before = dict(d.items())
        d.add("k", "v")
        assert d.remove("k") is True
        assert dict(d.items()) == before
        assert d.remove("k") is False
    assert not any(line.startswith("k\t") for line in read_lines(db_path))
    assert read_lines(db_path) == ["keep\t1"]

def test_clear_twice(tmp_path):
    db_path = tmp_path / "kv.tsv"
    with StrDictionaryFile(str(db_path)) as d:
        d.update({"a": "1", "b": "2"})
        d.clear()
        assert len(d) == 0
        d.clear()
        assert len(d) == 0
    assert db_path.read_text(encoding="utf-8") == ""

def test_buffered_writes_land_on_close(tmp_path):
    db_path = tmp_path / "kv.tsv"
    d = StrDictionaryFile(str(db_path), autoflush=False)
    d.add("k", "v")
    assert "k\tv" not in db_path.read_text(encoding="utf-8")
    d.close()
    assert read_lines(db_path) == ["k\tv"]

def test_buffered_remove_needs_flush(tmp_path):
    db_path = tmp_path / "kv.tsv"
    d = StrDictionaryFile(str(db_path), autoflush=False)
    d.add("a", "1")
    d.flush()
    assert read_lines(db_path) == ["a\t1"]
    d.remove("a")
    d.add("b", "2")
    assert read_lines(db_path) == ["a\t1"]
    d.flush()
    assert read_lines(db_path) == ["b\t2"]
    d.close()

def test_context_manager_flushes_on_error(tmp_path):
    db_path = tmp_path / "kv.tsv"
    with pytest.raises(RuntimeError):
        with StrDictionaryFile(str(db_path), autoflush=False) as d:
            d["a"] = "1"
            raise RuntimeError("boom")
    assert d.closed
    assert read_lines(db_path) == ["a\t1"]

def test_use_after_dispose(tmp_path):
    db_path = tmp_path / "kv.tsv"
    d = StrDictionaryFile(str(db_path), autoflush=False)
    d.add("a", "1")
    d.close()
    content = db_path.read_text(encoding="utf-8")

    ops = [
        lambda: d["a"],
        lambda: d.get("a"),
        lambda: d.try_get("a"),
        lambda: "a" in d,
        lambda: len(d),
        lambda: iter(d),
        lambda: d.items(),
        lambda: d.add("b", "2"),
        lambda: d.__setitem__("b", "2"),
        lambda: d.remove("a"),
        lambda: d.remove_item("a", "1"),
        lambda: d.clear(),
        lambda: d.flush(),
        lambda: d.copy_to([None]),
    ]
    for op in ops:
        with pytest.raises(UseAfterDisposeError):
            op()
    assert db_path.read_text(encoding="utf-8") == content

    # close is idempotent
    d.close()
    assert "closed" in repr(d)

def test_missing_key(tmp_path):
    with StrDictionaryFile(str(tmp_path / "kv.tsv")) as d:
        with pytest.raises(KeyNotFoundError):
            d["nope"]
        with pytest.raises(KeyError):
            del d["nope"]
        assert d.get("nope") is None
        assert d.get("nope", "dflt") == "dflt"
        assert d.try_get("nope") == (False, None)
        d["yes"] = "1"
        assert d.try_get("yes") == (True, "1")

def test_pair_membership_and_removal(tmp_path):
    db_path = tmp_path / "ints.tsv"
    settings = SerializationSettings(key=INT, value=INT)
    with DictionaryFile(str(db_path), settings) as d:
        d.add(1, 10)
        d.add(2, 20)
        assert d.contains_item(1, 10)
        assert not d.contains_item(1, 11)
        assert d.remove_item(1, 11) is False
        assert d.remove_item(1, 10) is True
        assert 1 not in d
    assert read_lines(db_path) == ["2\t20"]

def test_remove_uses_stored_line(tmp_path):
    # "007" decodes to 7, which would re-encode as "7"
    db_path = tmp_path / "ints.tsv"
    db_path.write_text("007\t1\n8\t2\n", encoding="utf-8")
    with DictionaryFile(str(db_path), SerializationSettings.uniform(INT)) as d:
        assert d[7] == 1
        assert d.remove(7) is True
    assert read_lines(db_path) == ["8\t2"]

def test_value_with_separator_round_trips(tmp_path):
    db_path = tmp_path / "kv.tsv"
    with StrDictionaryFile(str(db_path)) as d:
        d["k"] = "a\tb\tc"
    with StrDictionaryFile(str(db_path)) as d:
        assert d["k"] == "a\tb\tc"

def test_unencodable_entries_rejected(tmp_path):
    db_path = tmp_path / "kv.tsv"
    with StrDictionaryFile(str(db_path)) as d:
        d["a"] = "1"
        with pytest.raises(EncodeError):
            d.add("x\ty", "v")
        with pytest.raises(EncodeError):
            d["a"] = "multi\nline"
        assert dict(d.items()) == {"a": "1"}
    assert read_lines(db_path) == ["a\t1"]

def test_json_values(tmp_path):
    db_path = tmp_path / "cfg.tsv"
    settings = SerializationSettings(value=JSON)
    with DictionaryFile(str(db_path), settings) as d:
        d["cfg"] = {"b": 1, "a": [1, 2]}
    assert read_lines(db_path) == ['cfg\t{"a":[1,2],"b":1}']
    with DictionaryFile(str(db_path), settings) as d:
        assert d["cfg"] == {"a": [1, 2], "b": 1}

def test_iteration_is_snapshot(tmp_path):
    with StrDictionaryFile(str(tmp_path / "kv.tsv")) as d:
        d.update({"a": "1", "b": "2", "c": "3"})
        for key in d:
            d.remove(key)
        assert len(d) == 0

        d.update({"a": "1", "b": "2"})
        items = d.items()
        for key, value in items:
            d.remove(key)
            d[key + key] = value
        assert dict(d.items()) == {"aa": "1", "bb": "2"}
        # views are restartable
        assert list(items) == [("aa", "1"), ("bb", "2")]
        assert list(d.values()) == ["1", "2"]

def test_copy_to(tmp_path):
    with StrDictionaryFile(str(tmp_path / "kv.tsv")) as d:
        d.add("a", "1")
        d.add("b", "2")
        arr = [None] * 3
        d.copy_to(arr, 1)
        assert arr == [None, ("a", "1"), ("b", "2")]
        with pytest.raises(IndexError):
            d.copy_to([None] * 2, 1)
        with pytest.raises(ValueError):
            d.copy_to(arr, -1)

def test_mutable_mapping_helpers(tmp_path):
    db_path = tmp_path / "kv.tsv"
    with StrDictionaryFile(str(db_path)) as d:
        assert d.read_only is False
        assert d.setdefault("a", "1") == "1"
        assert d.setdefault("a", "2") == "1"
        d.update(b="2", c="3")
        assert d.pop("b") == "2"
        assert d == {"a": "1", "c": "3"}
    with StrDictionaryFile(str(db_path)) as d:
        assert d == {"a": "1", "c": "3"}

def test_pair_removal_goes_through_converters(tmp_path):
    # BOOL writes "true", while str(True) would give "True"
    db_path = tmp_path / "flags.tsv"
    settings = SerializationSettings(value=BOOL)
    with DictionaryFile(str(db_path), settings) as d:
        d.add("k", True)
        d.add("other", False)
        assert read_lines(db_path) == ["k\ttrue", "other\tfalse"]
        assert d.remove_item("k", False) is False
        assert d.remove_item("k", True) is True
    assert read_lines(db_path) == ["other\tfalse"]

def test_pair_removal_with_json_values(tmp_path):
    db_path = tmp_path / "cfg.tsv"
    with DictionaryFile(str(db_path), SerializationSettings(value=JSON)) as d:
        d["cfg"] = {"b": 1, "a": 2}
        assert d.remove_item("cfg", {"a": 2, "b": 1}) is True
    assert read_lines(db_path) == []

def test_colliding_key_text_rejected(tmp_path):
    db_path = tmp_path / "kv.tsv"
    with StrDictionaryFile(str(db_path)) as d:
        d[1] = "a"
        with pytest.raises(DuplicateKeyError) as ei:
            d["1"] = "b"
        assert ei.value.text == "1"
        with pytest.raises(DuplicateKeyError):
            d.add("1", "b")
        assert dict(d.items()) == {1: "a"}
        # once the owner is gone the text is free again
        d.remove(1)
        d["1"] = "b"
    assert read_lines(db_path) == ["1\tb"]
    with StrDictionaryFile(str(db_path)) as d:
        assert dict(d.items()) == {"1": "b"}

def test_colliding_key_text_after_reopen(tmp_path):
    db_path = tmp_path / "ints.tsv"
    db_path.write_text("7\tx\n", encoding="utf-8")
    with DictionaryFile(str(db_path), SerializationSettings(key=INT)) as d:
        with pytest.raises(DuplicateKeyError):
            d["7"] = "y"
        d[7] = "z"
    assert read_lines(db_path) == ["7\tz"]
