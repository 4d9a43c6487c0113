from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict
from urllib import error, request

from barberflow.config import get_settings
from barberflow.logger import configure_logging


def _post_json(url: str, body: Dict[str, Any], *, timeout: float = 15) -> Dict[str, Any]:
    req = request.Request(
        url=url,
        method="POST",
        data=json.dumps(body).encode("utf-8"),
        headers={"Accept": "application/json", "Content-Type": "application/json"},
    )
    try:
        with request.urlopen(req, timeout=timeout) as response:
            raw = response.read().decode("utf-8")
    except error.HTTPError as exc:
        raw_error = exc.read().decode("utf-8")
        try:
            parsed = json.loads(raw_error)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict) and "message" in parsed:
            code = parsed.get("code")
            detail = f"{parsed['message']} ({code})" if code else str(parsed["message"])
        else:
            detail = raw_error
        raise RuntimeError(f"HTTP {exc.code}: {detail}") from exc

    result = json.loads(raw) if raw else {}
    if not isinstance(result, dict):
        raise RuntimeError(f"Unexpected response from {url}")
    return result


def _print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "barberflow.main:app",
        host=args.host or settings.server_host,
        port=args.port or settings.server_port,
        reload=args.reload,
        log_config=None,
    )
    return 0


async def _cleanup_tokens() -> int:
    from barberflow.dependencies import get_engine, get_sessionmaker
    from barberflow.repositories.sql import SqlBookingTokenRepository
    from barberflow.services.tokens import reap_expired_tokens

    settings = get_settings()
    sessionmaker = get_sessionmaker(settings.database_url)
    try:
        async with sessionmaker() as session:
            return await reap_expired_tokens(SqlBookingTokenRepository(session))
    finally:
        await get_engine(settings.database_url).dispose()


def cmd_cleanup_tokens(args: argparse.Namespace) -> int:
    del args
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)
    removed = asyncio.run(_cleanup_tokens())
    _print_json({"removed": removed})
    return 0


def cmd_create_link(args: argparse.Namespace) -> int:
    body: Dict[str, Any] = {
        "barbershopId": args.barbershop_id,
        "customerPhone": args.phone,
    }
    if args.barber_id:
        body["barberId"] = args.barber_id
    _print_json(_post_json(args.api_url.rstrip("/") + "/auth/booking-link", body))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="barberflow", description="BarberFlow booking backend")
    parser.add_argument("--api-url", default="http://127.0.0.1:8000")

    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(func=cmd_serve)

    cleanup = sub.add_parser("cleanup-tokens", help="Delete expired booking tokens")
    cleanup.set_defaults(func=cmd_cleanup_tokens)

    create_link = sub.add_parser("create-link", help="Issue a booking link for a customer")
    create_link.add_argument("--barbershop-id", required=True)
    create_link.add_argument("--barber-id")
    create_link.add_argument("--phone", required=True)
    create_link.set_defaults(func=cmd_create_link)

    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    try:
        exit_code = args.func(args)
    except Exception as exc:  # noqa: BLE001
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
