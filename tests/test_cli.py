import json

import pytest

from docquiz import cli, settings


@pytest.fixture
def run(tmp_path, capsys):
    store_path = str(tmp_path / "stores.json")

    def _run(*argv):
        code = cli.main(["--store", store_path, *argv])
        return code, json.loads(capsys.readouterr().out)
    return _run


@pytest.fixture
def no_key(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", "")


def test_ingest_list_delete(run, tmp_path, no_key):
    doc = tmp_path / "notes.txt"
    doc.write_text("Mitochondria are the powerhouse of the cell.", encoding="utf-8")

    code, out = run("ingest", str(doc))
    assert code == 0
    doc_id = out["documentId"]
    assert doc_id.startswith("doc_") and doc_id.endswith("_notes.txt")

    code, out = run("list")
    assert out == {"documents": [doc_id]}

    code, out = run("delete", doc_id)
    assert out == {"documentId": doc_id, "deleted": True}
    assert run("list")[1] == {"documents": []}


def test_errors_are_printed_as_json(run, tmp_path, no_key):
    bad = tmp_path / "image.png"
    bad.write_bytes(b"\x89PNG")
    code, out = run("ingest", str(bad))
    assert code == 1
    assert "image.png" in out["error"]


def test_generate_requires_api_key(run, tmp_path, no_key):
    doc = tmp_path / "notes.txt"
    doc.write_text("Some notes.", encoding="utf-8")
    doc_id = run("ingest", str(doc))[1]["documentId"]
    code, out = run("generate", doc_id)
    assert code == 1
    assert out["error"] == "OpenAI API key is not configured"


def test_generate_and_grade(run, tmp_path, monkeypatch, fake_client):
    reply = json.dumps({"questions": [
        {"type": "yes-no", "question": "Is ATP energy?", "correctAnswer": "Yes", "weight": 4},
    ]})
    client = fake_client([reply])
    monkeypatch.setattr(cli, "build_client", lambda: client)

    doc = tmp_path / "bio.txt"
    doc.write_text("ATP stores energy.", encoding="utf-8")
    doc_id = run("ingest", str(doc))[1]["documentId"]

    code, out = run("generate", doc_id, "--count", "1")
    assert code == 0
    qid = out["questions"][0]["id"]

    answers = tmp_path / "answers.json"
    answers.write_text(json.dumps({"answers": [{"questionId": qid, "answer": "yes"}]}), encoding="utf-8")
    code, out = run("grade", out["testId"], str(answers), "--no-llm")
    assert code == 0
    assert out["testResult"]["percentage"] == 100.0
    assert out["testResult"]["gradingResults"][0]["feedback"] == "Great job! Your answer is correct."


def test_grade_with_unreadable_answers(run, tmp_path, no_key):
    code, out = run("grade", "test_1", str(tmp_path / "missing.json"))
    assert code == 1
    assert out["error"] == "Answers file could not be read"


def test_ingest_missing_file(run, tmp_path, no_key):
    code, out = run("ingest", str(tmp_path / "nope.txt"))
    assert code == 1
    assert out["error"] == "File not found"
    assert "nope.txt" in out["details"]


def test_store_write_failure_is_printed_as_json(tmp_path, capsys, no_key):
    doc = tmp_path / "notes.txt"
    doc.write_text("Some notes.", encoding="utf-8")
    (tmp_path / "blocked").write_text("not a directory", encoding="utf-8")
    code = cli.main(["--store", str(tmp_path / "blocked" / "stores.json"), "ingest", str(doc)])
    assert code == 1
    assert json.loads(capsys.readouterr().out)["error"] == "Document store could not be written"
