"""
Oracle Administration Tool

Command line front end over a LevelDB oracle store: initialize ownership,
manage committee keys and consistency opt-in, ingest proof payloads and read
prices back.
"""
import json
import logging
import argparse
from pathlib import Path

from oracle_v2.config import Config
from oracle_v2.core import Operation
from oracle_v2 import crypto
from oracle_v2.db import DB
from oracle_v2.errors import OracleError
from oracle_v2.monitoring import Monitor
from oracle_v2.verifier import OracleVerifier

logger = logging.getLogger(__name__)


def load_config(path: str = None) -> Config:
    if path:
        return Config.from_file(path)
    return Config.default()


def open_verifier(config: Config, owner: bytes = None):
    db = DB(
        config.database.path,
        write_buffer_size=config.database.write_buffer_size,
        max_open_files=config.database.max_open_files,
        compression=config.database.compression,
    )
    monitor = None
    if config.monitoring.enabled:
        monitor = Monitor(host=config.monitoring.host, port=config.monitoring.port)
        monitor.start_server()
    return db, OracleVerifier(db, owner=owner, config=config.oracle, monitor=monitor)


def caller_address(args) -> bytes:
    """Caller from --caller-pem (public key file) or --caller (hex address)."""
    if getattr(args, 'caller_pem', None):
        return crypto.caller_address(Path(args.caller_pem).read_text())
    return bytes.fromhex(args.caller)


def format_entry(entry) -> dict:
    return {
        'pair_id': entry.pair_id,
        'value': str(entry.value),
        'decimal': entry.decimal,
        'timestamp': entry.timestamp,
        'round': entry.round,
    }


def run(args) -> int:
    if args.command == "sample-config":
        Config.default().to_file(args.output)
        print(f"Generated sample configuration at: {args.output}")
        return 0

    config = load_config(args.config)
    if args.db:
        config.database.path = args.db

    owner = caller_address(args) if args.command == "init" else None
    db, verifier = open_verifier(config, owner=owner)
    try:
        if args.command == "init":
            stored = verifier.owner()
            if stored != owner:
                print(f"Error: store already owned by {stored.hex()}")
                return 1
            print(f"Owner: {owner.hex()}")

        elif args.command == "transfer-ownership":
            new_owner = bytes.fromhex(args.new_owner)
            verifier.transfer_ownership(caller_address(args), new_owner)
            print(f"Owner: {new_owner.hex()}")

        elif args.command == "register-committee":
            verifier.register_committee(caller_address(args), args.committee_id,
                                        bytes.fromhex(args.public_key))
            print(f"Registered committee {args.committee_id}")

        elif args.command == "remove-committee":
            verifier.remove_committee(caller_address(args), args.committee_id)
            print(f"Removed committee {args.committee_id}")

        elif args.command == "enable-hcc":
            added = verifier.enable_hcc(caller_address(args), args.pairs)
            print(f"Consistency check enabled for {added}")

        elif args.command == "disable-hcc":
            removed = verifier.disable_hcc(caller_address(args), args.pairs)
            print(f"Consistency check disabled for {removed}")

        elif args.command == "ingest":
            payload = Path(args.payload).read_bytes()
            accepted = verifier.verify_and_ingest(payload)
            print(json.dumps([format_entry(e) for e in accepted], indent=2))

        elif args.command == "price":
            entries = verifier.get_prices(args.pairs)
            print(json.dumps([format_entry(e) for e in entries], indent=2))

        elif args.command == "derived":
            op = Operation.MULTIPLY if args.op == "multiply" else Operation.DIVIDE
            derived = verifier.get_derived_price(args.pair_a, args.pair_b, op)
            print(json.dumps({
                'value': str(derived.value),
                'decimal': derived.decimal,
                'round_gap': derived.round_gap,
                'comparison': derived.comparison.value,
            }, indent=2))

        elif args.command == "hcc":
            states = verifier.hcc_state(args.pairs)
            print(json.dumps([{'pair_id': s['pair_id'], 'state': s['state'].value} for s in states], indent=2))

    except OracleError as e:
        print(f"Error: {type(e).__name__}: {e}")
        return 1
    finally:
        if verifier.monitor:
            verifier.monitor.stop_server()
        db.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Oracle Administration Tool")
    parser.add_argument("--config", type=str, help="Path to config file")
    parser.add_argument("--db", type=str, help="Database path (overrides config)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_sample = subparsers.add_parser("sample-config", help="Write a default config.json")
    parser_sample.add_argument("--output", type=str, default="config.json", help="Output file path")

    def with_caller(sub):
        group = sub.add_mutually_exclusive_group(required=True)
        group.add_argument("--caller", type=str, help="Caller address (hex)")
        group.add_argument("--caller-pem", type=str, help="Caller public key PEM file")
        return sub

    with_caller(subparsers.add_parser("init", help="Record the governance owner"))

    parser_owner = with_caller(subparsers.add_parser("transfer-ownership", help="Hand governance to a new owner"))
    parser_owner.add_argument("--new-owner", type=str, required=True, help="New owner address (hex)")

    parser_reg = with_caller(subparsers.add_parser("register-committee", help="Add or rotate a committee key"))
    parser_reg.add_argument("--committee-id", type=int, required=True)
    parser_reg.add_argument("--public-key", type=str, required=True, help="48-byte BLS public key (hex)")

    parser_rm = with_caller(subparsers.add_parser("remove-committee", help="Remove a committee key"))
    parser_rm.add_argument("--committee-id", type=int, required=True)

    parser_en = with_caller(subparsers.add_parser("enable-hcc", help="Opt pairs into the consistency check"))
    parser_en.add_argument("pairs", type=int, nargs="+")

    parser_dis = with_caller(subparsers.add_parser("disable-hcc", help="Opt pairs out of the consistency check"))
    parser_dis.add_argument("pairs", type=int, nargs="+")

    parser_ingest = subparsers.add_parser("ingest", help="Verify and ingest a proof payload file")
    parser_ingest.add_argument("payload", type=str)

    parser_price = subparsers.add_parser("price", help="Show stored prices")
    parser_price.add_argument("pairs", type=int, nargs="+")

    parser_derived = subparsers.add_parser("derived", help="Derive a price from two pairs")
    parser_derived.add_argument("pair_a", type=int)
    parser_derived.add_argument("pair_b", type=int)
    parser_derived.add_argument("--op", choices=["multiply", "divide"], default="multiply")

    parser_hcc = subparsers.add_parser("hcc", help="Show consistency states")
    parser_hcc.add_argument("pairs", type=int, nargs="+")

    return parser


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    raise SystemExit(run(build_parser().parse_args()))
