import argparse
import json
import sys
from typing import Any, Optional

import httpx


def _print_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=True))
    sys.stdout.write("\n")


def _error_detail(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            detail = exc.response.json().get("detail")
        except ValueError:
            detail = None
        if detail:
            return f"{exc.response.status_code}: {detail}"
    return str(exc)


def _request(
    method: str,
    url: str,
    json_body: Optional[dict] = None,
    params: Optional[dict] = None,
) -> int:
    try:
        resp = httpx.request(method, url, json=json_body, params=params, timeout=5)
        resp.raise_for_status()
        _print_json(resp.json())
        return 0
    except Exception as exc:
        _print_json({"status": "error", "error": _error_detail(exc)})
        return 1


def health(base_url: str) -> int:
    return _request("GET", f"{base_url}/health")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="scriptctl")
    parser.add_argument(
        "--base-url",
        default="http://127.0.0.1:7600",
        help="Base URL for the descript service",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("health", help="Check service health")
    subparsers.add_parser("list", help="Show whitelisted origins")

    decide_parser = subparsers.add_parser("decide", help="Evaluate a resource load")
    decide_parser.add_argument("url")
    decide_parser.add_argument(
        "--kind", default="script", help="Content kind of the load (default: script)"
    )

    check_parser = subparsers.add_parser("check", help="Check whether a URL is allowed")
    check_parser.add_argument("url")

    allow_parser = subparsers.add_parser("allow", help="Whitelist the origin of a URL")
    allow_parser.add_argument("url")

    revoke_parser = subparsers.add_parser("revoke", help="Remove the origin of a URL")
    revoke_parser.add_argument("url")

    load_parser = subparsers.add_parser("load", help="Replace the whitelist preference")
    load_parser.add_argument("preference", nargs="*", help="Origins, e.g. https://a.com/")
    return parser


def main(argv: Optional[list] = None) -> None:
    args = build_parser().parse_args(argv)
    base_url = args.base_url.rstrip("/")

    if args.command == "health":
        raise SystemExit(health(base_url))
    if args.command == "list":
        raise SystemExit(_request("GET", f"{base_url}/v1/whitelist"))
    if args.command == "decide":
        raise SystemExit(
            _request(
                "POST",
                f"{base_url}/v1/decide",
                json_body={"content_kind": args.kind, "url": args.url},
            )
        )
    if args.command == "check":
        raise SystemExit(
            _request("GET", f"{base_url}/v1/check", params={"url": args.url})
        )
    if args.command in ("allow", "revoke"):
        raise SystemExit(
            _request(
                "POST",
                f"{base_url}/v1/whitelist/{args.command}",
                json_body={"url": args.url},
            )
        )
    if args.command == "load":
        raise SystemExit(
            _request(
                "PUT",
                f"{base_url}/v1/whitelist",
                json_body={"preference": " ".join(args.preference)},
            )
        )


if __name__ == "__main__":
    main()
