"""Print a bearer token for a provider to stdout.

Usage:
    python -m barbershop.print_provider_token <provider_id>
"""
import sys

from barbershop.auth.jwt_handler import create_access_token
from barbershop.database import SessionLocal
from barbershop.models.provider import Provider


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1 or not args[0].isdigit():
        print("Usage: python -m barbershop.print_provider_token <provider_id>", file=sys.stderr)
        sys.exit(2)

    db = SessionLocal()
    try:
        provider = db.query(Provider).filter(Provider.id == int(args[0])).first()
    finally:
        db.close()

    if provider is None:
        print(f"Provider {args[0]} not found.", file=sys.stderr)
        sys.exit(1)

    print(create_access_token(subject=str(provider.id)))


if __name__ == "__main__":
    main()
