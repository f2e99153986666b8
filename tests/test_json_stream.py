import json

from leakscan.parsers.json_stream import JSONStreamParser, iter_documents


def finding(path, snippet="ghp_secretsecretsecret", rule_id="kingfisher.github.1", **extra):
    detail = {"snippet": snippet, "path": path, "confidence": "high"}
    detail.update(extra)
    return {"rule": {"id": rule_id, "name": "GitHub Token"}, "finding": detail}


def test_two_documents_separated_by_newline():
    doc1 = json.dumps({"findings": [finding("/tmp/a")]})
    doc2 = json.dumps([finding("/tmp/b")])
    out = JSONStreamParser().parse(doc1 + "\n" + doc2)
    assert [f.path for f in out] == ["/tmp/a", "/tmp/b"]


def test_back_to_back_documents_without_whitespace():
    doc = json.dumps([finding("/tmp/a")])
    out = JSONStreamParser().parse(doc + doc)
    assert len(out) == 2


def test_malformed_fragment_between_documents_is_dropped():
    doc1 = json.dumps({"findings": [finding("/tmp/a")]})
    doc2 = json.dumps({"findings": [finding("/tmp/b")]})
    text = doc1 + "\n{not: valid, json}\n" + doc2
    out = JSONStreamParser().parse(text)
    assert sorted(f.path for f in out) == ["/tmp/a", "/tmp/b"]


def test_truncated_document_does_not_hide_later_ones():
    doc = json.dumps({"findings": [finding("/tmp/b")]})
    text = '{"findings": [{"rule": {"id": "x"' + "\n" + doc
    out = JSONStreamParser().parse(text)
    assert [f.path for f in out] == ["/tmp/b"]


def test_log_noise_and_brackets_in_text():
    doc = json.dumps([finding("/tmp/a")])
    text = "[INFO] starting scan\nscanned 3 files\n" + doc + "\n[WARN] done"
    out = JSONStreamParser().parse(text)
    assert [f.path for f in out] == ["/tmp/a"]


def test_braces_and_escaped_quotes_inside_strings():
    snippet = 'pass"word{with}[brackets]\\'
    doc = json.dumps([finding("/tmp/a", snippet=snippet)])
    out = JSONStreamParser().parse(doc)
    assert len(out) == 1
    assert out[0].snippet == snippet


def test_single_finding_object_per_line():
    text = "\n".join(json.dumps(finding(f"/tmp/{i}")) for i in range(3))
    out = JSONStreamParser().parse(text)
    assert [f.path for f in out] == ["/tmp/0", "/tmp/1", "/tmp/2"]


def test_invalid_finding_objects_are_skipped():
    good = finding("/tmp/a", fingerprint=123, validation={"status": "Active", "response": "200 OK"})
    items = [
        good,
        {"rule": {"id": "x"}, "finding": {"snippet": "", "path": "/tmp/b"}},
        {"rule": "nope", "finding": {}},
        {"finding": {"snippet": "s", "path": "/tmp/c"}},
        "just a string",
        42,
    ]
    out = JSONStreamParser().parse(json.dumps({"findings": items}))
    assert len(out) == 1
    f = out[0]
    assert f.fingerprint == "123"
    assert f.rule_name == "GitHub Token"
    assert f.validation.status == "Active"
    assert f.validation.response == "200 OK"


def test_documents_without_findings_contribute_nothing():
    text = json.dumps({"summary": {"total": 0}}) + "\n" + json.dumps({"findings": []})
    assert JSONStreamParser().parse(text) == []


def test_iter_documents_yields_every_valid_document():
    docs = list(iter_documents('{"a": 1} garbage [1, 2] {"b": "}"}'))
    assert docs == [{"a": 1}, [1, 2], {"b": "}"}]


def test_empty_input():
    assert JSONStreamParser().parse("") == []
    assert JSONStreamParser().looks_like("plain text only") is False
