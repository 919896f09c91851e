"""
Operator CLI.

    landregistry init-db
    landregistry add-parcel LP-2025-001 "Bastos, Yaounde" --area 2.5 --land-type residential
    landregistry stats --kind parcels
    landregistry verify --number CERT-... --hash <sha256>
    landregistry audit --action CERTIFICATE_ISSUED --limit 20
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Optional

from landregistry import __version__
from landregistry.core.errors import LandRegistryError
from landregistry.domain.enums import AuditAction, LandType

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID = 2


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="landregistry",
        description="Land registry - parcels, applications and ownership certificates",
    )
    parser.add_argument("--version", "-v", action="store_true", help="show version")
    parser.add_argument("--config", "-c", help="YAML config file")
    parser.add_argument("--db-url", help="database URL (overrides config and LANDREGISTRY_DB_URL)")

    subparsers = parser.add_subparsers(dest="command", help="available commands")

    subparsers.add_parser("init-db", help="create all tables")

    add_parcel = subparsers.add_parser("add-parcel", help="register a new land parcel")
    add_parcel.add_argument("parcel_number")
    add_parcel.add_argument("location")
    add_parcel.add_argument("--area", required=True, help="area in hectares")
    add_parcel.add_argument("--land-type", required=True, choices=[t.value for t in LandType])
    add_parcel.add_argument("--market-value")
    add_parcel.add_argument("--district")
    add_parcel.add_argument("--region")
    add_parcel.add_argument("--actor", help="operator id recorded in the audit trail")

    stats = subparsers.add_parser("stats", help="aggregate counts")
    stats.add_argument("--kind", choices=["parcels", "applications", "certificates", "all"], default="all")

    verify = subparsers.add_parser("verify", help="check a certificate")
    target = verify.add_mutually_exclusive_group(required=True)
    target.add_argument("--number", help="certificate number (requires --hash)")
    target.add_argument("--code", help="public verification code")
    verify.add_argument("--hash", dest="certificate_hash", help="certificate integrity hash")

    audit = subparsers.add_parser("audit", help="list audit events, newest first")
    audit.add_argument("--action", choices=[a.value for a in AuditAction])
    audit.add_argument("--resource-type", choices=["parcel", "application", "certificate"])
    audit.add_argument("--resource-id", type=int)
    audit.add_argument("--actor")
    audit.add_argument("--limit", type=int, default=50)

    return parser


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _build_engine(parsed: argparse.Namespace):
    from landregistry.application.engine import RegistryEngine
    from landregistry.config.models import AppConfig
    from landregistry.infrastructure.logging import configure_logging

    config = AppConfig.from_yaml(parsed.config) if parsed.config else AppConfig.from_env()
    if parsed.db_url:
        config.database.url = parsed.db_url
    configure_logging(config.logging.level)
    return RegistryEngine.from_config(config)


def run_cli(args: Optional[list] = None) -> int:
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.version:
        print(f"landregistry v{__version__}")
        return EXIT_OK

    if not parsed.command:
        parser.print_help()
        return EXIT_OK

    if parsed.command == "verify" and parsed.number and not parsed.certificate_hash:
        parser.error("verify --number requires --hash")

    try:
        engine = _build_engine(parsed)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    try:
        if parsed.command == "init-db":
            engine.init_schema()
            print(f"Schema ready at {engine.provider.db_url}")

        elif parsed.command == "add-parcel":
            parcel = engine.create_parcel(
                parsed.parcel_number,
                parsed.location,
                parsed.area,
                parsed.land_type,
                market_value=parsed.market_value,
                district=parsed.district,
                region=parsed.region,
                actor_id=parsed.actor,
            )
            _print_json(parcel.to_dict())

        elif parsed.command == "stats":
            out = {}
            if parsed.kind in ("parcels", "all"):
                out["parcels"] = engine.get_parcel_stats()
            if parsed.kind in ("applications", "all"):
                out["applications"] = engine.get_application_stats()
            if parsed.kind in ("certificates", "all"):
                out["certificates"] = engine.get_certificate_stats()
            _print_json(out)

        elif parsed.command == "verify":
            if parsed.code:
                result = engine.lookup_certificate(parsed.code)
            else:
                result = engine.verify_certificate(parsed.number, parsed.certificate_hash)
            _print_json(result.to_dict())
            return EXIT_OK if result.valid else EXIT_INVALID

        elif parsed.command == "audit":
            _print_json(
                engine.list_audit_events(
                    action=parsed.action,
                    resource_type=parsed.resource_type,
                    resource_id=parsed.resource_id,
                    actor_id=parsed.actor,
                    limit=parsed.limit,
                )
            )

        return EXIT_OK

    except LandRegistryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        engine.close()


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
