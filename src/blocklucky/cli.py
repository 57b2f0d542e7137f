from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from datetime import datetime, timezone

from .config import Settings
from .contract import Lottery, deploy
from .draw import build_audit
from .errors import LedgerError, LotteryError
from .ledger import Ledger, derive_address, validate_address
from .pricing import from_coins, to_coins
from .randomness import build_source
from .rpc import RpcClient, load_seed_from_block_feed_file
from .store import load_deployment, save_deployment
from .verify import verify_audit


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def resolve_address(value: str) -> str:
    """Accepts a base58 address or `@label` for a derived demo account."""
    if value.startswith("@"):
        return derive_address(value[1:])
    return validate_address(value)


def _parse_coins(amount: str) -> int:
    try:
        return from_coins(amount)
    except ValueError as e:
        raise SystemExit(f"Invalid amount: {e}")


def _settings(args: argparse.Namespace) -> Settings:
    return Settings.from_env(state_file_override=args.state, rpc_url_override=args.rpc_url)


def _load(args: argparse.Namespace) -> tuple[Settings, Lottery]:
    settings = _settings(args)
    randomness = build_source(settings.randomness, settings.randomness_seed)
    return settings, load_deployment(settings.state_file, randomness)


def cmd_deploy(args: argparse.Namespace) -> int:
    settings = _settings(args)
    if os.path.exists(settings.state_file) and not args.force:
        raise SystemExit(f"{settings.state_file} already exists. Use --force to redeploy.")

    min_participants = args.min_participants or settings.min_participants
    owner = resolve_address(args.owner)
    lottery = deploy(
        owner,
        min_participants,
        ledger=Ledger(),
        randomness=build_source(settings.randomness, settings.randomness_seed),
    )
    save_deployment(lottery, settings.state_file)

    print("========================================")
    print("🎟  BLOCKLUCKY DEPLOYED")
    print("========================================")
    print(f"Contract         : {lottery.address}")
    print(f"Owner            : {lottery.owner}")
    print(f"Min participants : {lottery.min_participants}")
    print(f"Ticket price     : {to_coins(lottery.ticket_price)}")
    print(f"State file       : {settings.state_file}")
    return 0


def cmd_fund(args: argparse.Namespace) -> int:
    settings, lottery = _load(args)
    address = resolve_address(args.address)
    balance = lottery.ledger.fund(address, _parse_coins(args.amount))
    save_deployment(lottery, settings.state_file)
    print(f"Funded {address} with {args.amount}; balance {to_coins(balance)}")
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    _, lottery = _load(args)
    address = resolve_address(args.address)
    balance = lottery.ledger.balance_of(address)
    print(f"Address : {address}")
    print(f"Balance : {to_coins(balance)} ({balance} base units)")
    if balance == 0:
        print(f"Account is empty. Fund it with: blocklucky fund {args.address} 10")
    return 0


def cmd_buy(args: argparse.Namespace) -> int:
    settings, lottery = _load(args)
    sender = resolve_address(args.sender)
    lottery.buy_ticket(sender, lottery.ticket_price)
    save_deployment(lottery, settings.state_file)
    _print_round(lottery)
    return 0


def cmd_buy_batch(args: argparse.Namespace) -> int:
    settings, lottery = _load(args)
    sender = resolve_address(args.sender)
    if args.value is not None:
        value = _parse_coins(args.value)
    else:
        value = lottery.calculate_price(args.quantity).total_price
    lottery.buy_tickets(sender, args.quantity, value)
    save_deployment(lottery, settings.state_file)
    _print_round(lottery)
    return 0


def cmd_price(args: argparse.Namespace) -> int:
    _, lottery = _load(args)
    quote = lottery.calculate_price(args.quantity)
    print(f"Quantity : {args.quantity}")
    print(f"Total    : {to_coins(quote.total_price)} ({quote.total_price} base units)")
    print(f"Discount : {quote.discount_percent}%")
    return 0


def cmd_info(args: argparse.Namespace) -> int:
    _, lottery = _load(args)
    print(f"Contract         : {lottery.address}")
    print(f"Owner            : {lottery.owner}")
    print(f"Ticket price     : {to_coins(lottery.ticket_price)}")
    _print_round(lottery)
    return 0


def cmd_participants(args: argparse.Namespace) -> int:
    _, lottery = _load(args)
    for address in lottery.get_all_participants():
        print(f"{address}  tickets={lottery.tickets_by_address(address)}")
    return 0


def cmd_reset(args: argparse.Namespace) -> int:
    settings, lottery = _load(args)
    lottery.reset_lottery(resolve_address(args.sender), args.min_participants)
    save_deployment(lottery, settings.state_file)
    _print_round(lottery)
    return 0


def cmd_withdraw(args: argparse.Namespace) -> int:
    settings, lottery = _load(args)
    amount = lottery.emergency_withdraw(resolve_address(args.sender))
    save_deployment(lottery, settings.state_file)
    print(f"Withdrew {to_coins(amount)} to owner {lottery.owner}")
    return 0


def cmd_reject(args: argparse.Namespace) -> int:
    settings, lottery = _load(args)
    address = resolve_address(args.address)
    lottery.ledger.reject_payments(address, rejecting=not args.allow)
    save_deployment(lottery, settings.state_file)
    state = "accepts" if args.allow else "rejects"
    print(f"{address} now {state} incoming payments")
    return 0


def cmd_events(args: argparse.Namespace) -> int:
    _, lottery = _load(args)
    for event in lottery.events.entries:
        print(json.dumps(event.to_dict()))
    return 0


def cmd_audit(args: argparse.Namespace) -> int:
    _, lottery = _load(args)
    if not lottery.draws:
        raise SystemExit("No draw has happened yet.")
    if not -len(lottery.draws) <= args.index < len(lottery.draws):
        raise SystemExit(f"No draw at index {args.index} ({len(lottery.draws)} recorded).")
    record = lottery.draws[args.index]
    audit = build_audit(record, datetime.now(timezone.utc).isoformat())
    with open(args.out, "w", encoding="utf-8") as f:
        json.dump(audit, f, indent=2)
    print(f"🧾 Wrote audit for slot {record.slot}: {args.out}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    result = verify_audit(args.audit)
    print("✅ AUDIT VERIFIED")
    print(f"Winner        : {result['winner']}")
    print(f"Winning index : {result['winning_index']} of {result['participant_count']}")
    print(f"Prize         : {to_coins(result['prize'])}")
    print(f"Seed SHA-256  : {result['seed_hash_hex']}")
    return 0


def cmd_seed(args: argparse.Namespace) -> int:
    log = logging.getLogger("seed")
    if args.block_feed_file:
        seed = load_seed_from_block_feed_file(args.block_feed_file, slot_hint=args.slot)
        seed_source = f"file:{args.block_feed_file}"
    else:
        settings = _settings(args)
        if not settings.rpc_url:
            raise SystemExit("Missing RPC_URL. Put it in .env, export it or pass --rpc-url.")
        rpc = RpcClient(settings.rpc_url, timeout_s=args.timeout)
        try:
            seed = rpc.get_blockhash_for_slot(args.slot)
            seed_source = "rpc:getBlock"
        finally:
            rpc.close()

    log.info("Seed source : %s", seed_source)
    print(f"Blockhash for slot {args.slot}: {seed}")
    print(f"Use it with: BLOCKLUCKY_RANDOMNESS=block BLOCKLUCKY_SEED={seed}")
    return 0


def _print_round(lottery: Lottery) -> None:
    info = lottery.get_lottery_info()
    print("----------------------------------------")
    print(f"Participants     : {info.participant_count} / {info.min_participants}")
    print(f"Pot              : {to_coins(info.pot)}")
    print(f"Active           : {info.active}")
    print(f"Completed        : {info.completed}")
    if info.completed:
        print(f"🏆 Winner        : {info.winner}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="blocklucky",
        description="Threshold-triggered lottery on a simulated ledger.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--state", default=None, help="State file (else BLOCKLUCKY_STATE_FILE).")
    p.add_argument("--rpc-url", default=None, help="Override RPC URL (else use env).")
    p.add_argument("--timeout", type=float, default=60.0, help="RPC timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    d = sub.add_parser("deploy", help="Deploy a new lottery to the state file.")
    d.add_argument("--owner", required=True, help="Owner address or @label.")
    d.add_argument("--min-participants", type=int, default=None)
    d.add_argument("--force", action="store_true", help="Overwrite an existing deployment.")
    d.set_defaults(func=cmd_deploy)

    f = sub.add_parser("fund", help="Credit an account from the faucet.")
    f.add_argument("address")
    f.add_argument("amount", help="Amount in coins, e.g. 10 or 0.5.")
    f.set_defaults(func=cmd_fund)

    b = sub.add_parser("balance", help="Show an account balance.")
    b.add_argument("address")
    b.set_defaults(func=cmd_balance)

    t = sub.add_parser("buy", help="Buy one ticket.")
    t.add_argument("--sender", required=True)
    t.set_defaults(func=cmd_buy)

    bb = sub.add_parser("buy-batch", help="Buy several tickets with a volume discount.")
    bb.add_argument("--sender", required=True)
    bb.add_argument("--quantity", required=True, type=int)
    bb.add_argument(
        "--value",
        default=None,
        help="Attached payment in coins (default: the contract-computed price).",
    )
    bb.set_defaults(func=cmd_buy_batch)

    pr = sub.add_parser("price", help="Quote a batch purchase.")
    pr.add_argument("--quantity", required=True, type=int)
    pr.set_defaults(func=cmd_price)

    sub.add_parser("info", help="Show the current round.").set_defaults(func=cmd_info)
    sub.add_parser("participants", help="List participants.").set_defaults(func=cmd_participants)
    sub.add_parser("events", help="Dump the event log as JSON lines.").set_defaults(func=cmd_events)

    r = sub.add_parser("reset", help="Start a new round (owner only).")
    r.add_argument("--sender", required=True)
    r.add_argument("--min-participants", required=True, type=int)
    r.set_defaults(func=cmd_reset)

    w = sub.add_parser("withdraw", help="Emergency withdrawal of the pot (owner only).")
    w.add_argument("--sender", required=True)
    w.set_defaults(func=cmd_withdraw)

    rj = sub.add_parser("reject", help="Make an account refuse incoming payments.")
    rj.add_argument("address")
    rj.add_argument("--allow", action="store_true", help="Accept payments again.")
    rj.set_defaults(func=cmd_reject)

    a = sub.add_parser("audit", help="Write an audit JSON for a past draw.")
    a.add_argument("--out", default="audit.json", help="Audit output JSON path.")
    a.add_argument("--index", type=int, default=-1, help="Draw index (default: latest).")
    a.set_defaults(func=cmd_audit)

    v = sub.add_parser("verify", help="Verify an existing audit.json deterministically.")
    v.add_argument("--audit", required=True, help="Path to audit.json.")
    v.set_defaults(func=cmd_verify)

    s = sub.add_parser("seed", help="Fetch a finalized blockhash to seed draws.")
    s.add_argument("--slot", required=True, type=int, help="Finalized target slot.")
    s.add_argument(
        "--block-feed-file",
        default=None,
        help=(
            "Read the blockhash from a file instead of RPC: a raw blockhash "
            "or JSON {\"blockhash\": ..., \"slot\": ...}."
        ),
    )
    s.set_defaults(func=cmd_seed)

    return p


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        code = args.func(args)
    except (LotteryError, LedgerError) as e:
        print(f"❌ Reverted: {e}", file=sys.stderr)
        code = 1
    raise SystemExit(code)
