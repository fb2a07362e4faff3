import base64
import json
import zipfile

import pytest


def record_doc(method="POST", url="http://x/read", body=b"", headers=None, status=200, response_body=b""):
    """Build a record document in the archive JSON shape."""
    return {
        "request": {
            "method": method,
            "url": url,
            "headers": headers if headers is not None else {"Content-Type": ["application/x-protobuf"]},
            "body": base64.b64encode(body).decode("ascii"),
        },
        "response": {
            "status": status,
            "headers": {},
            "body": base64.b64encode(response_body).decode("ascii"),
        },
    }


def write_archive(path, entries):
    """
    Write a zip archive. Each entry is (name, content, date_time) where
    content is a dict (dumped as JSON), str or bytes.
    """
    with zipfile.ZipFile(path, "w") as zf:
        for name, content, date_time in entries:
            if isinstance(content, dict):
                content = json.dumps(content)
            zf.writestr(zipfile.ZipInfo(name, date_time=date_time), content)
    return path


@pytest.fixture
def make_archive(tmp_path):
    counter = {"n": 0}

    def _make(entries):
        counter["n"] += 1
        return str(write_archive(tmp_path / f"archive_{counter['n']}.zip", entries))

    return _make
