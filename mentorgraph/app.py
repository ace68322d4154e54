import argparse
import json
import threading
import time
from pathlib import Path

from .env import load_env, load_settings

from . import __version__
from .compatibility import match_breakdown
from .exceptions import PostingValidationError, StoreError
from .filters import NetworkFilter
from .live import LiveMergeReducer, PostingChannel
from .logger import get_logger
from .models import ConnectionKind, PostingKind, ViewerContext
from .normalize import now_ms
from .schema import parse_fetch_response, parse_posting, validate_posting
from .session import Snapshot, ViewingSession
from .store_client import EntityStoreClient

STREAM_JOIN_SECONDS = 2.0


def _read_json(path_str: str):
    path = Path(path_str)
    if not path.exists():
        raise SystemExit(f"Input file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise SystemExit(f"Invalid JSON in {path}: {e}")


def _viewer(args: argparse.Namespace) -> ViewerContext:
    settings = load_settings()
    wallet = args.wallet or settings.wallet or ""
    skills = args.skills if args.skills is not None else settings.skills
    return ViewerContext.from_profile_skills(wallet, skills)


def _now(args: argparse.Namespace) -> int:
    return args.now if args.now is not None else now_ms()


def _network_filter(args: argparse.Namespace) -> NetworkFilter:
    rating = None
    if args.min_rating is not None or args.max_rating is not None:
        rating = (
            args.min_rating if args.min_rating is not None else 0.0,
            args.max_rating if args.max_rating is not None else 5.0,
        )
    try:
        return NetworkFilter(
            skill=args.skill,
            seniority=args.seniority,
            name_search=args.name,
            role=args.role,
            min_reputation=args.min_reputation,
            min_sessions=args.min_sessions,
            rating_range=rating,
            ttl_bucket=args.ttl_bucket,
        )
    except ValueError as e:
        raise SystemExit(str(e))


def _load_session(args: argparse.Namespace) -> ViewingSession:
    try:
        result = parse_fetch_response(_read_json(args.input))
    except StoreError as e:
        raise SystemExit(str(e))
    session = ViewingSession(_viewer(args), network_filter=_network_filter(args))
    session.reducer.apply_fetch(result, skill_filter=args.skill)
    return session


def _format_remaining(ms: int) -> str:
    if ms <= 0:
        return "expired"
    minutes, seconds = divmod(ms // 1000, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h{minutes:02d}m" if hours else f"{minutes}m{seconds:02d}s"


def _print_ranking(snap: Snapshot) -> None:
    if not snap.nodes:
        print("No postings.")
        return
    for i, node in enumerate(snap.nodes, start=1):
        expiry = snap.expiry.get(node.key)
        remaining = _format_remaining(expiry.remaining_ms) if expiry else "?"
        print(
            f"{i:>3}. [{node.type.value:<5}] {node.posting.skill:<24} "
            f"{node.relevance:6.1f}  {remaining:>8}  {node.posting.wallet}"
        )
    matches = [c for c in snap.connections if c.kind == ConnectionKind.MATCH]
    if matches:
        print(f"Matches ({len(matches)}):")
        for c in matches:
            print(f"  {c.from_key} -> {c.to_key}  {c.score:.2f}")


def cmd_validate(args: argparse.Namespace) -> None:
    posting = _read_json(args.input)
    errors = validate_posting(posting)
    if errors:
        print("Invalid:")
        for e in errors:
            print(f" - {e}")
        raise SystemExit(2)
    print("Valid")


def cmd_rank(args: argparse.Namespace) -> None:
    session = _load_session(args)
    _print_ranking(session.snapshot(_now(args)))


def cmd_graph(args: argparse.Namespace) -> None:
    session = _load_session(args)
    print(json.dumps(session.snapshot(_now(args)).to_dict(), indent=2))


def cmd_match(args: argparse.Namespace) -> None:
    try:
        ask = parse_posting(_read_json(args.ask), PostingKind.ASK)
        offer = parse_posting(_read_json(args.offer), PostingKind.OFFER)
    except PostingValidationError as e:
        raise SystemExit(str(e))
    breakdown = match_breakdown(ask, offer, _now(args))
    print(json.dumps(breakdown.to_dict(), indent=2))


def cmd_watch(args: argparse.Namespace) -> None:
    settings = load_settings()
    logger = get_logger(level=settings.log_level)
    client = EntityStoreClient(
        settings.store_url,
        timeout=settings.request_timeout,
        max_retries=settings.fetch_retries,
        logger=logger,
    )
    network_filter = _network_filter(args)
    session = ViewingSession(
        _viewer(args),
        reducer=LiveMergeReducer(logger=logger),
        network_filter=network_filter,
        logger=logger,
    )

    channel = PostingChannel()
    subscription = channel.subscribe()
    stop = threading.Event()
    reader = threading.Thread(target=client.stream, args=(channel, stop), daemon=True)
    reader.start()

    try:
        result = client.fetch_network(network_filter, settings.space_id)
    except StoreError as e:
        stop.set()
        client.close_stream()
        raise SystemExit(f"Initial fetch failed: {e}")
    session.reducer.apply_fetch(result, skill_filter=network_filter.skill)

    snap = session.snapshot(now_ms())
    _print_ranking(snap)
    expired = {k for k, e in snap.expiry.items() if e.expired}
    deadline = time.monotonic() + args.duration if args.duration else None
    live = True

    try:
        while deadline is None or time.monotonic() < deadline:
            drained = subscription.drain(session.reducer, timeout=settings.refresh_seconds)
            if drained.failures and live:
                live = False
                print("[warn] live updates stopped; showing last fetched data")
            snap = session.tick(now_ms())
            now_expired = {k for k, e in snap.expiry.items() if e.expired}
            if drained.changed or now_expired != expired:
                expired = now_expired
                print()
                _print_ranking(snap)
    except KeyboardInterrupt:
        pass
    finally:
        stop.set()
        client.close_stream()
        reader.join(timeout=STREAM_JOIN_SECONDS)
        subscription.unsubscribe()
        logger.log_metrics_summary()


def _add_viewer_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--wallet", help="Viewer wallet (or set MENTORGRAPH_WALLET)")
    p.add_argument("--skills", help="Comma-separated viewer skills (or set MENTORGRAPH_SKILLS)")
    p.add_argument("--now", type=int, help="Evaluate at this epoch-millisecond time (default: now)")


def _add_filter_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--skill", help="Only postings whose skill contains this text")
    p.add_argument("--seniority", help="Author seniority")
    p.add_argument("--name", help="Author display name contains this text")
    p.add_argument("--role", choices=["mentor", "learner"], help="Mentor offers or learner asks")
    p.add_argument("--min-reputation", type=float, help="Minimum author reputation score")
    p.add_argument("--min-sessions", type=int, help="Minimum completed sessions")
    p.add_argument("--min-rating", type=float, help="Minimum average rating")
    p.add_argument("--max-rating", type=float, help="Maximum average rating")
    p.add_argument("--ttl-bucket", choices=["expired", "under_15m", "under_1h", "under_6h", "over_6h"],
                   help="Remaining-time bucket")


def main():
    load_env()
    parser = argparse.ArgumentParser(prog="mentorgraph", description="Mentorship ask/offer matching and ranking")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")

    val = subparsers.add_parser("validate", help="Validate a posting JSON record")
    val.add_argument("--input", required=True, help="Path to posting JSON")
    val.set_defaults(func=cmd_validate)

    rnk = subparsers.add_parser("rank", help="Rank postings from a fetch-response JSON file")
    rnk.add_argument("--input", required=True, help="Path to {asks, offers, profiles} JSON")
    _add_viewer_args(rnk)
    _add_filter_args(rnk)
    rnk.set_defaults(func=cmd_rank)

    grp = subparsers.add_parser("graph", help="Print the network graph for a fetch-response JSON file")
    grp.add_argument("--input", required=True, help="Path to {asks, offers, profiles} JSON")
    _add_viewer_args(grp)
    _add_filter_args(grp)
    grp.set_defaults(func=cmd_graph)

    mtc = subparsers.add_parser("match", help="Score one ask against one offer")
    mtc.add_argument("--ask", required=True, help="Path to ask JSON")
    mtc.add_argument("--offer", required=True, help="Path to offer JSON")
    mtc.add_argument("--now", type=int, help="Evaluate at this epoch-millisecond time (default: now)")
    mtc.set_defaults(func=cmd_match)

    wch = subparsers.add_parser("watch", help="Fetch from the store, follow the live stream and keep ranking")
    wch.add_argument("--wallet", help="Viewer wallet (or set MENTORGRAPH_WALLET)")
    wch.add_argument("--skills", help="Comma-separated viewer skills (or set MENTORGRAPH_SKILLS)")
    wch.add_argument("--duration", type=float, help="Stop after this many seconds (default: until Ctrl-C)")
    _add_filter_args(wch)
    wch.set_defaults(func=cmd_watch)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
