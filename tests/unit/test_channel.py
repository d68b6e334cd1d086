from pathlib import Path

import numpy as np

from convtestlib.channel import JsonlChannel, MemoryChannel


def test_memory_channel_keys_by_tags():
    ch = MemoryChannel()
    assert ch.send_vector(1, 2, np.array([1.0, 2.0])) == 0
    out = np.zeros(2)
    assert ch.recv_vector(1, 2, out) == 0
    assert out.tolist() == [1.0, 2.0]
    assert ch.recv_vector(2, 1, out) < 0
    assert ch.recv_vector(1, 2, np.zeros(3)) < 0


def test_jsonl_channel_last_record_wins(tmp_path: Path):
    ch = JsonlChannel(tmp_path / "nested" / "ck.jsonl")
    ch.send_vector(0, 0, np.array([1.0]))
    ch.send_vector(0, 0, np.array([2.0]))
    out = np.zeros(1)
    assert ch.recv_vector(0, 0, out) == 0
    assert out.tolist() == [2.0]


def test_jsonl_channel_missing_file(tmp_path: Path):
    ch = JsonlChannel(tmp_path / "absent.jsonl")
    assert ch.recv_vector(0, 0, np.zeros(5)) < 0
