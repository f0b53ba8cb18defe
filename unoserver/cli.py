"""
unoserver CLI - Command-line interface for the server.

Usage:
    unoserver serve [--host H] [--port P]     Run the HTTP/WebSocket server
    unoserver simulate [--bots N] [--mode M]  Play a bots-only match on a virtual clock
"""

import argparse
import logging
import random
import sys


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="unoserver - Real-time multiplayer UNO server",
        prog="unoserver",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8000, help="Bind port")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    # Simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Play a bots-only match")
    simulate_parser.add_argument("--bots", type=int, default=4, help="Number of bots (2-4)")
    simulate_parser.add_argument("--mode", default="standard", help="Game mode (standard, chaos, ...)")
    simulate_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    simulate_parser.add_argument(
        "--max-minutes", type=float, default=120, help="Give up after this much virtual time",
    )
    simulate_parser.add_argument("--quiet", "-q", action="store_true", help="Only print the result")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "simulate":
        sys.exit(cmd_simulate(args))
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args):
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "unoserver.api.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )


def cmd_simulate(args) -> int:
    """Run a bots-only match to completion. Returns the exit code."""
    from .engine_core import GameMode, GameStatus, ManualScheduler, MatchEngine

    try:
        mode = GameMode(args.mode)
    except ValueError:
        print(f"Unknown mode: {args.mode}")
        print(f"Available: {', '.join(m.value for m in GameMode)}")
        return 1

    if not 2 <= args.bots <= 4:
        print("Bots must be between 2 and 4")
        return 1

    scheduler = ManualScheduler()
    engine = MatchEngine(
        "sim",
        mode=mode,
        scheduler=scheduler,
        rng=random.Random(args.seed),
    )

    if not args.quiet:
        last = {"message": None}

        def show(snapshot):
            if snapshot.message != last["message"]:
                last["message"] = snapshot.message
                print(f"[{scheduler.now():7.1f}s] {snapshot.message}")

        engine.subscribe(show)

    for name in ("Alpha", "Beta", "Gamma", "Delta")[:args.bots]:
        engine.add_player(f"Bot {name}", is_bot=True)
    engine.start_game()

    limit = args.max_minutes * 60
    while engine.status == GameStatus.PLAYING and scheduler.now() < limit:
        if not scheduler.run_next():
            break

    state = engine.get_state()
    if state.status != GameStatus.GAME_OVER:
        print(f"No winner after {scheduler.now():.0f}s of play")
        engine.close()
        return 2

    winner = state.get_player(state.winner_id)
    print(f"Winner: {winner.name} after {scheduler.now():.0f}s")
    for p in state.players:
        print(f"  {p.name}: {p.hand_size} cards left")
    return 0


if __name__ == "__main__":
    main()
