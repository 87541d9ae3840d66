import argparse
import json
import logging
import sys

from . import settings
from .errors import DocquizError, InvalidSubmission
from .documents import ingest_document
from .generation import DEFAULT_COUNT, generate_test
from .grading import grade_test
from .llm import build_client
from .store import DocumentStore

logger = logging.getLogger("docquiz")


def _emit(payload) -> None:
    json.dump(payload, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")


def _load_answers(path: str):
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise InvalidSubmission("Answers file could not be read", str(e)) from e
    # accept either a bare list or {"answers": [...]}
    if isinstance(data, dict):
        data = data.get("answers")
    return data


def cmd_ingest(args, store, client):
    return ingest_document(store, args.file, args.name)


def cmd_generate(args, store, client):
    return generate_test(store, client, args.document_id, args.count)


def cmd_grade(args, store, client):
    answers = _load_answers(args.answers)
    return grade_test(store, args.test_id, answers,
                      client=None if args.no_llm else client,
                      subjective_policy=args.subjective_policy)


def cmd_delete(args, store, client):
    return {"documentId": args.document_id, "deleted": store.delete_document(args.document_id)}


def cmd_list(args, store, client):
    return {"documents": store.document_ids()}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docquiz", description="Generate and grade quizzes from documents")
    parser.add_argument("--store", default=None, help="Path to the document store JSON file")
    parser.add_argument("--log-level", default=None, help="Logging level (default from DOCQUIZ_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("ingest", help="Extract a document and add it to the store")
    p.add_argument("file")
    p.add_argument("--name", default=None, help="File name to record (defaults to the path's name)")
    p.set_defaults(func=cmd_ingest)

    p = sub.add_parser("generate", help="Generate a test for a stored document")
    p.add_argument("document_id")
    p.add_argument("--count", type=int, default=DEFAULT_COUNT)
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("grade", help="Grade a JSON list of answers against a stored test")
    p.add_argument("test_id")
    p.add_argument("answers", help='JSON file: [{"questionId": ..., "answer": ...}, ...]')
    p.add_argument("--no-llm", action="store_true", help="Skip LLM feedback and analysis")
    p.add_argument("--subjective-policy", choices=["auto", "llm"], default=None)
    p.set_defaults(func=cmd_grade)

    p = sub.add_parser("delete", help="Remove a document from the store")
    p.add_argument("document_id")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("list", help="List stored document ids")
    p.set_defaults(func=cmd_list)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings.configure_logging(args.log_level)
    settings.log_effective_config(logger)

    client = build_client()
    store = DocumentStore(args.store)
    try:
        with store:
            _emit(args.func(args, store, client))
    except DocquizError as e:
        logger.error("%s failed: %s", args.command, e)
        _emit(e.to_dict())
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
