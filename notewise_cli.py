import argparse
import sys
from typing import List, Optional

import httpx


DEFAULT_API_BASE = "http://127.0.0.1:5000"
REQUEST_TIMEOUT_S = 60


def _join_url(base: str, path: str) -> str:
    return base.rstrip("/") + path


def _error_detail(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    return detail or resp.text.strip() or resp.reason_phrase


def _fail(action: str, resp: httpx.Response) -> int:
    print(f"Failed to {action}: HTTP {resp.status_code} {_error_detail(resp)}")
    return 1


def _print_record(record: dict) -> None:
    provider = record.get("provider") or "offline"
    print(f"#{record.get('id')} [{record.get('created_at')}] via {provider}")
    print(record.get("summary_text", ""))


def run_summarize(args: argparse.Namespace) -> int:
    payload = {"text": args.text, "length": args.length}
    with httpx.Client() as client:
        resp = client.post(_join_url(args.base_url, "/api/summarize"), json=payload, timeout=REQUEST_TIMEOUT_S)
        if resp.status_code >= 400:
            return _fail("summarize", resp)
        _print_record(resp.json())
    return 0


def run_suggest(args: argparse.Namespace) -> int:
    payload = {"word": args.word, "context": args.context}
    with httpx.Client() as client:
        resp = client.post(_join_url(args.base_url, "/api/suggest"), json=payload, timeout=REQUEST_TIMEOUT_S)
        if resp.status_code >= 400:
            return _fail("fetch suggestions", resp)
        for option in resp.json():
            print(f"- {option}")
    return 0


def run_history(args: argparse.Namespace) -> int:
    with httpx.Client() as client:
        if args.clear:
            resp = client.delete(_join_url(args.base_url, "/api/history-clear"), timeout=10)
            if resp.status_code >= 400:
                return _fail("clear history", resp)
            print(f"Deleted {resp.json().get('deleted', 0)} summaries.")
            return 0
        if args.delete is not None:
            resp = client.delete(_join_url(args.base_url, f"/api/history/{args.delete}"), timeout=10)
            if resp.status_code >= 400:
                return _fail(f"delete summary {args.delete}", resp)
            print(f"Deleted summary {args.delete}.")
            return 0
        resp = client.get(_join_url(args.base_url, "/api/history"), timeout=10)
        if resp.status_code >= 400:
            return _fail("fetch history", resp)
        records = resp.json()
        if not records:
            print("No saved summaries.")
        for record in records:
            _print_record(record)
    return 0


def run_health(args: argparse.Namespace) -> int:
    with httpx.Client() as client:
        try:
            resp = client.get(_join_url(args.base_url, "/api/health"), timeout=10)
        except httpx.RequestError as exc:
            print(f"Server unreachable: {exc}")
            return 1
        if resp.status_code >= 400:
            return _fail("fetch health", resp)
        data = resp.json()
    print(f"Status: {data.get('status')}")
    for name, configured in (data.get("providers") or {}).items():
        print(f"- {name}: {'configured' if configured else 'not configured'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NoteWise CLI")
    parser.add_argument("--base-url", default=DEFAULT_API_BASE, help="API base URL")
    subparsers = parser.add_subparsers(dest="command")

    summarize = subparsers.add_parser("summarize", help="Summarize text and save it to history")
    summarize.add_argument("text", help="Text to summarize")
    summarize.add_argument("--length", choices=["short", "medium", "detailed"], default="medium")

    suggest = subparsers.add_parser("suggest", help="Suggest synonyms for a word")
    suggest.add_argument("word", help="Word to replace")
    suggest.add_argument("--context", default="", help="Surrounding sentence")

    history = subparsers.add_parser("history", help="List or edit saved summaries")
    group = history.add_mutually_exclusive_group()
    group.add_argument("--clear", action="store_true", help="Delete every saved summary")
    group.add_argument("--delete", type=int, metavar="ID", help="Delete one summary")

    subparsers.add_parser("health", help="Show which providers are configured")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    commands = {
        "summarize": run_summarize,
        "suggest": run_suggest,
        "history": run_history,
        "health": run_health,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
