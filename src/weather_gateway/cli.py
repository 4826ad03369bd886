"""Command-line interface for the weather gateway."""

import argparse
import asyncio
import sys

from weather_gateway import __version__


def _parse_params(pairs: list[str]) -> dict[str, str | float]:
    """Parse `key=value` arguments; numeric values become floats."""
    params: dict[str, str | float] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got {pair!r}")
        try:
            params[key] = float(value)
        except ValueError:
            params[key] = value
    return params


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from weather_gateway.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "weather_gateway.api.app:create_app",
        factory=True,
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


async def _init_db() -> None:
    from weather_gateway.database.connection import close_db, create_tables, init_db

    await init_db()
    try:
        await create_tables()
    finally:
        await close_db()


async def _promote(email: str) -> bool:
    from sqlalchemy import select

    from weather_gateway.auth.models import Role
    from weather_gateway.database.connection import close_db, get_db, init_db
    from weather_gateway.database.models import User

    await init_db()
    try:
        async with get_db() as session:
            result = await session.execute(select(User).where(User.email == email.strip().lower()))
            user = result.scalar_one_or_none()
            if user is None:
                return False
            user.role = Role.ELEVATED.value
            await session.commit()
            return True
    finally:
        await close_db()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Weather Gateway - Authenticated, rate-limited weather API"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", help="Bind address (default: HOST setting)")
    serve_parser.add_argument("--port", type=int, help="Port (default: PORT setting)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    # Init-db command
    subparsers.add_parser("init-db", help="Create database tables")

    # Promote command
    promote_parser = subparsers.add_parser("promote", help="Give a user the elevated role")
    promote_parser.add_argument("email", help="Email of a registered user")

    # Fingerprint command
    fingerprint_parser = subparsers.add_parser(
        "fingerprint", help="Print the cache fingerprint for query parameters"
    )
    fingerprint_parser.add_argument(
        "params",
        nargs="+",
        help="Query parameters as key=value (e.g. latitude=51.5074 longitude=-0.1278)",
    )
    fingerprint_parser.add_argument(
        "--namespace",
        default="weather:current",
        help="Fingerprint namespace",
    )
    fingerprint_parser.add_argument(
        "--precision",
        type=int,
        default=4,
        help="Decimals kept for numeric values",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "serve":
        return _serve(args)

    if args.command == "init-db":
        from weather_gateway.log import configure_logging

        configure_logging()
        asyncio.run(_init_db())
        print("Database tables created.")
        return 0

    if args.command == "promote":
        if not asyncio.run(_promote(args.email)):
            print(f"No user with email {args.email!r}", file=sys.stderr)
            return 1
        print(f"{args.email} is now elevated.")
        return 0

    if args.command == "fingerprint":
        from weather_gateway.cache.fingerprint import canonical_query, fingerprint

        try:
            params = _parse_params(args.params)
        except ValueError as e:
            parser.error(str(e))
        print(canonical_query(params, args.precision))
        print(fingerprint(params, namespace=args.namespace, precision=args.precision))
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
