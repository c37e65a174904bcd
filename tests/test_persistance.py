import json
import threading
import time

from utils.persistance import file_lock, read_json, write_json


def test_write_json_replaces_whole_file_without_temp_leftovers(tmp_path):
    path = tmp_path / "data" / "rows.json"
    write_json(path, [1, 2, 3])
    write_json(path, [4])
    assert json.loads(path.read_text(encoding="utf-8")) == [4]
    assert [p.name for p in path.parent.iterdir()] == ["rows.json"]


def test_read_json_defaults(tmp_path):
    assert read_json(tmp_path / "missing.json", default=[]) == []
    blank = tmp_path / "blank.json"
    blank.write_text("\n", encoding="utf-8")
    assert read_json(blank, default={"a": 1}) == {"a": 1}


def test_file_lock_excludes_a_second_holder(tmp_path):
    path = tmp_path / "events.json"
    order = []
    held = threading.Event()

    def other():
        held.wait(2.0)
        with file_lock(path):
            order.append("other")

    t = threading.Thread(target=other)
    t.start()
    with file_lock(path):
        held.set()
        time.sleep(0.2)
        order.append("first")
    t.join(2.0)

    assert order == ["first", "other"]
    assert (tmp_path / "events.json.lock").exists()
