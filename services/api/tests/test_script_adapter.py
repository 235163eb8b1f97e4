"""
Tests for the Apps Script adapter against a mocked HTTP transport.

Run with: pytest tests/test_script_adapter.py -v
"""
import asyncio
import json
from urllib.parse import parse_qs

import httpx
import pytest

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adapters.base import StoreError
from adapters.script import ScriptAdapter, ScriptError
from conftest import make_file
from models.row import SerialCounters

SCRIPT_URL = "https://script.example/macros/s/abc/exec"


class Recorder:
    """MockTransport handler that replays canned JSON and keeps the requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        if isinstance(resp, httpx.Response):
            return resp
        return httpx.Response(200, json=resp)

    def form(self, i=0):
        return {k: v[0] for k, v in parse_qs(self.requests[i].content.decode()).items()}


def _adapter(recorder):
    return ScriptAdapter(SCRIPT_URL, transport=httpx.MockTransport(recorder))


class TestReads:

    def test_fetch_master(self):
        rec = Recorder({"success": True, "data": [["Type", "Category"], ["PAN", "Personal"]]})
        rows = asyncio.run(_adapter(rec).fetch_master())
        assert rows[1] == ["PAN", "Personal"]
        params = rec.requests[0].url.params
        assert params["sheet"] == "Master"
        assert params["action"] == "fetch"

    def test_fetch_master_without_rows(self):
        rec = Recorder({"success": True})
        with pytest.raises(ScriptError):
            asyncio.run(_adapter(rec).fetch_master())

    def test_get_next_serials(self):
        rec = Recorder({"success": True, "nextSerials": {"personal": 5, "company": 10, "director": 1}})
        counters = asyncio.run(_adapter(rec).get_next_serials())
        assert counters.to_dict() == {"personal": 5, "company": 10, "director": 1}
        assert rec.requests[0].url.params["action"] == "getNextSerials"

    def test_remote_error_text_is_surfaced(self):
        rec = Recorder({"success": False, "error": "Serials sheet missing"})
        with pytest.raises(ScriptError) as exc:
            asyncio.run(_adapter(rec).get_next_serials())
        assert str(exc.value) == "Serials sheet missing"

    def test_malformed_serials(self):
        rec = Recorder({"success": True, "nextSerials": {"personal": 5}})
        with pytest.raises(ScriptError):
            asyncio.run(_adapter(rec).get_next_serials())

    def test_read_retried_on_transport_error(self):
        rec = Recorder(
            httpx.ConnectError("connection reset"),
            {"success": True, "data": []},
        )
        assert asyncio.run(_adapter(rec).fetch_master()) == []
        assert len(rec.requests) == 2


class TestWrites:

    def test_update_serials(self):
        rec = Recorder({"success": True})
        counters = SerialCounters(personal=6, company=11, director=1)
        asyncio.run(_adapter(rec).update_serials(counters))
        params = rec.requests[0].url.params
        assert params["action"] == "updateSerials"
        assert params["personal"] == "6"
        assert params["company"] == "11"
        assert params["director"] == "1"

    def test_upload_file(self):
        rec = Recorder({"success": True, "fileUrl": "https://drive.example/f/1"})
        f = make_file("scan.png", size=3, mime_type="image/png")
        url = asyncio.run(_adapter(rec).upload_file(f, "folder-9"))
        assert url == "https://drive.example/f/1"
        form = rec.form()
        assert form["action"] == "uploadImage"
        assert form["folderId"] == "folder-9"
        assert form["fileName"] == "scan.png"
        assert form["mimeType"] == "image/png"
        assert form["base64Data"] == "eHh4"

    def test_upload_without_url(self):
        rec = Recorder({"success": True})
        with pytest.raises(ScriptError):
            asyncio.run(_adapter(rec).upload_file(make_file("a.jpg"), "f"))

    def test_insert_row(self):
        rec = Recorder({"success": True})
        row = ["05/03/2024 09:07", "PN-001"] + [""] * 18
        asyncio.run(_adapter(rec).insert_row(row))
        form = rec.form()
        assert form["action"] == "insert"
        assert form["sheetName"] == "Documents"
        assert json.loads(form["rowData"]) == row

    def test_writes_are_not_retried(self):
        rec = Recorder(httpx.ConnectError("connection reset"), {"success": True})
        with pytest.raises(httpx.ConnectError):
            asyncio.run(_adapter(rec).insert_row(["x"]))
        assert len(rec.requests) == 1

    def test_http_error_status(self):
        rec = Recorder(httpx.Response(500, text="Sheet is locked"))
        with pytest.raises(StoreError) as exc:
            asyncio.run(_adapter(rec).insert_row(["x"]))
        assert "500" in str(exc.value)

    def test_non_json_body(self):
        rec = Recorder(httpx.Response(200, text="<html>login</html>"))
        with pytest.raises(ScriptError):
            asyncio.run(_adapter(rec).insert_row(["x"]))


def test_requires_url():
    with pytest.raises(ValueError):
        ScriptAdapter("")
