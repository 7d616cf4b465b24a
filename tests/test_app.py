from __future__ import annotations

import json

import pytest

from smart_qr_tool.app import build_parser, run
from smart_qr_tool.qr import QRCodeManager


@pytest.fixture(autouse=True)
def fake_encoder(monkeypatch):
    monkeypatch.setattr(QRCodeManager, "encode", lambda self, text, options=None: b"png-bytes")
    monkeypatch.setattr(
        QRCodeManager, "decode_image", lambda self, path: "mailto:someone@example.com"
    )


@pytest.fixture()
def history_file(tmp_path):
    return tmp_path / "history.json"


def test_generate_wifi_prints_payload(history_file, capsys):
    code = run(
        [
            "--history-file",
            str(history_file),
            "generate",
            "wifi",
            "--ssid",
            "Home",
            "--password",
            "pw",
            "--hidden",
        ]
    )

    assert code == 0
    assert capsys.readouterr().out.strip() == "WIFI:T:WPA;S:Home;P:pw;H:true;;"
    document = json.loads(history_file.read_text(encoding="utf-8"))
    assert document["history"][0]["content_type"] == "wifi"


def test_generate_writes_output_file(history_file, tmp_path, capsys):
    output = tmp_path / "code.png"

    code = run(["--history-file", str(history_file), "generate", "text", "example.com/x", "-o", str(output)])

    assert code == 0
    assert output.read_bytes() == b"png-bytes"
    assert "QR code saved to" in capsys.readouterr().out


def test_generate_missing_ssid_fails(history_file, capsys):
    code = run(["--history-file", str(history_file), "generate", "wifi"])

    assert code == 1
    assert "SSID" in capsys.readouterr().err
    assert not history_file.exists()


def test_scan_json_output(history_file, tmp_path, capsys):
    code = run(["--history-file", str(history_file), "scan", str(tmp_path / "x.png"), "--json"])

    assert code == 0
    result = json.loads(capsys.readouterr().out)
    assert result["content_type"] == "email"
    assert result["actions"][0] == {"action": "email", "target": "mailto:someone@example.com"}


def test_history_and_stats(history_file, capsys):
    run(["--history-file", str(history_file), "generate", "phone", "555-1234"])
    run(["--history-file", str(history_file), "generate", "url", "example.com"])
    capsys.readouterr()

    assert run(["--history-file", str(history_file), "stats"]) == 0
    out = capsys.readouterr().out
    assert "Generated: 2" in out
    assert "Scanned: 0" in out

    assert run(["--history-file", str(history_file), "history", "list"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 2
    assert "https://example.com" in lines[0]

    item_id = lines[1].split("\t")[0]
    assert run(["--history-file", str(history_file), "history", "remove", item_id]) == 0
    assert run(["--history-file", str(history_file), "history", "remove", item_id]) == 1

    assert run(["--history-file", str(history_file), "history", "clear"]) == 0
    assert json.loads(history_file.read_text(encoding="utf-8"))["history"] == []


def test_no_history_flag(history_file, capsys):
    assert run(["--history-file", str(history_file), "--no-history", "generate", "text", "hi"]) == 0
    assert not history_file.exists()
    assert run(["--no-history", "stats"]) == 1


def test_parser_rejects_unknown_type():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["generate", "fax", "123"])


def test_environment_cap_applies_after_history_was_saved(history_file, monkeypatch, capsys):
    for content in ("one", "two", "three"):
        assert run(["--history-file", str(history_file), "generate", "text", content]) == 0

    monkeypatch.setenv("SMART_QR_MAX_HISTORY", "1")
    assert run(["--history-file", str(history_file), "generate", "text", "four"]) == 0
    capsys.readouterr()

    assert run(["--history-file", str(history_file), "history", "list"]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert len(lines) == 1
    assert "'four'" in lines[0]


@pytest.mark.parametrize(
    "encryption, expected",
    [("wpa", "WIFI:T:WPA;"), ("Wep", "WIFI:T:WEP;"), ("NOPASS", "WIFI:T:nopass;")],
)
def test_generate_wifi_encryption_is_case_insensitive(history_file, capsys, encryption, expected):
    code = run(
        [
            "--history-file",
            str(history_file),
            "generate",
            "wifi",
            "--ssid",
            "Home",
            "--password",
            "pw",
            "--encryption",
            encryption,
        ]
    )

    assert code == 0
    assert capsys.readouterr().out.startswith(expected)


def test_generate_wifi_unknown_encryption_fails(history_file, capsys):
    code = run(
        ["--history-file", str(history_file), "generate", "wifi", "--ssid", "Home", "--encryption", "wpa9"]
    )

    assert code == 1
    assert "Unsupported WiFi encryption" in capsys.readouterr().err
