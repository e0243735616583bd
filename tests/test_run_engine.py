"""
Tests for the run_engine command-line tool (rule path, no persistence).
"""

from __future__ import annotations

import json

import pandas as pd

from fraudlink.analysis_engine.engine import run_fraud_engine
from fraudlink.tools.run_engine import load_account_names, load_transactions, main


def _snapshot(tx):
    return [
        tx("t1", "A", "M1", offset_sec=0, amount=15_000, device_id="D1"),
        tx("t2", "C", "M2", offset_sec=60, amount=15_000, device_id="D1"),
        tx("t3", "B", "M3", offset_sec=3600, amount=15_000),
    ]


def test_json_input_to_out_file(tmp_path, tx):
    src = tmp_path / "tx.json"
    src.write_text(json.dumps(_snapshot(tx)), encoding="utf-8")
    out = tmp_path / "out" / "result.json"
    assert main(["--input", str(src), "--no-models", "--no-persist", "--out", str(out)]) == 0
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert [c["account_ids"] for c in payload["clusters"]] == [["A", "C"]]
    assert payload["account_risk"]["B"]["cluster_id"] is None


def test_csv_input_to_stdout(tmp_path, tx, capsys):
    src = tmp_path / "tx.csv"
    pd.DataFrame(_snapshot(tx)).to_csv(src, index=False)
    assert main(["--input", str(src), "--no-models", "--no-persist"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["clusters"][0]["label"] == "Cluster A"
    assert payload["link_count"] == 2


def test_csv_rows_normalize_like_json(tmp_path, tx):
    """Empty CSV cells arrive as NaN and are treated as missing."""
    src = tmp_path / "tx.csv"
    pd.DataFrame(_snapshot(tx)).to_csv(src, index=False)
    rows = load_transactions(src)
    assert len(rows) == 3
    assert rows[0]["from_account_id"] == "A"


def test_names_file_formats(tmp_path):
    as_json = tmp_path / "names.json"
    as_json.write_text(json.dumps({"A": "Alice"}), encoding="utf-8")
    as_csv = tmp_path / "names.csv"
    as_csv.write_text("account_id,name\nA,Alice\nB,\n", encoding="utf-8")
    assert load_account_names(as_json) == {"A": "Alice"}
    assert load_account_names(as_csv) == {"A": "Alice"}


def test_missing_input_returns_error(tmp_path):
    assert main(["--input", str(tmp_path / "nope.json"), "--no-persist"]) == 1


def test_persist_to_db_path(tmp_path, tx):
    from fraudlink.database import get_database

    src = tmp_path / "tx.json"
    src.write_text(json.dumps(_snapshot(tx)), encoding="utf-8")
    db_path = tmp_path / "clusters.db"
    out = tmp_path / "result.json"
    assert main(["--input", str(src), "--no-models", "--db", str(db_path), "--out", str(out)]) == 0
    rows = get_database(db_path).get_fraud_clusters()
    assert [r.account_ids for r in rows] == [["A", "C"]]


def test_csv_ids_keep_leading_zeros(tmp_path):
    """Device ids 007 and 7 are different devices and do not link A and C."""
    src = tmp_path / "tx.csv"
    src.write_text(
        "id,from_account_id,to_account_id,to_account_number,amount,timestamp,device_id\n"
        "t1,A,M1,000123,15000,2024-03-01T12:00:00Z,007\n"
        "t2,C,M2,123,15000,2024-03-01T12:01:00Z,7\n",
        encoding="utf-8",
    )
    rows = load_transactions(src)
    assert rows[0]["device_id"] == "007"
    assert rows[0]["to_account_number"] == "000123"
    assert rows[1]["device_id"] == "7"
    assert run_fraud_engine(rows).clusters == []
