#!/usr/bin/env python3
"""
Switchboard CLI — patch each call through to the right line.

Every command has a short name and standard aliases:

    COMMAND         ALIASES         WHAT IT DOES
    -------         -------         ----------------------------------
    serve           start, dial     Start the Switchboard HTTP server
    ask             send            Dispatch one message and print the reply
    route           trace           Show where a model id would be routed
    keys            key             Set, clear or show a user's provider keys
    models          catalog         List the model catalog by provider
"""

import argparse
import asyncio
import sys
import uuid

__version__ = "0.1.0"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _store():
    from switchboard.config import get_config
    from switchboard.storage.sqlite_store import SQLiteStore
    return SQLiteStore(get_config()["storage"]["sqlite_path"])


def _load(args):
    """Apply --config before anything reads the config."""
    if getattr(args, "config", None):
        from switchboard.config import load_config
        load_config(args.config)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Start the Switchboard HTTP server."""
    import uvicorn
    from switchboard.config import get_config

    cfg = get_config()
    host = args.host or cfg["server"]["host"]
    port = args.port or cfg["server"]["port"]

    print(f"  Switchboard v{__version__} on {host}:{port}")
    print(f"  Store: {cfg['storage']['sqlite_path']}")
    print()

    uvicorn.run(
        "switchboard.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_ask(args):
    """Dispatch a single user message."""
    from switchboard.config import get_config
    from switchboard.dispatcher import Dispatcher
    from switchboard.errors import SwitchboardError
    from switchboard.main import _setup_logging
    from switchboard.prompts import personalize

    cfg = get_config()
    _setup_logging(cfg)
    store = _store()
    dispatcher = Dispatcher.from_config(cfg, store)

    context_id = args.context or uuid.uuid4().hex
    history = [m.to_turn() for m in store.get_messages(context_id)]
    text = " ".join(args.message)
    turns = history + [{"role": "user", "content": text}]
    if cfg["dispatch"].get("personalize", True):
        turns = personalize(turns, store.get_profile(args.user))

    try:
        store.append_message(context_id, "user", text, user_id=args.user, model=args.model)
        result = asyncio.run(dispatcher.dispatch(args.user, context_id, turns, args.model))
    except SwitchboardError as e:
        print(f"  [error] {e.message}", file=sys.stderr)
        sys.exit(1)

    print(result.content)
    print()
    print(f"  [{result.notice} · {result.provider.value} · context {context_id}]")


def cmd_route(args):
    """Show the route decision for a model id."""
    from switchboard.credentials import CredentialResolver
    from switchboard.routing import select_route

    credentials = CredentialResolver(_store()).resolve(args.user)
    decision = select_route(args.model, credentials)
    info = decision.to_dict(redact=True)
    print(f"  Model:     {args.model}")
    print(f"  Names:     {info['model_provider']}")
    print(f"  Provider:  {info['provider']}")
    print(f"  Direct:    {'yes' if info['use_direct_api'] else 'no'}")
    print(f"  Key:       {info['api_key'] or '(none)'}")


def cmd_keys(args):
    """Set, clear or show provider keys for a user."""
    from switchboard.credentials import CredentialResolver
    from switchboard.routing import Provider, redact_key, validate_api_key

    store = _store()
    if args.action == "show":
        credentials = CredentialResolver(store).resolve(args.user)
        for provider in Provider:
            key = credentials.get(provider)
            print(f"  {provider.value:<11} {redact_key(key) if key else '-'}")
        return

    if not args.provider:
        print("  [error] provider is required", file=sys.stderr)
        sys.exit(2)
    provider = Provider(args.provider)

    if args.action == "clear":
        store.set_credential(args.user, provider, None)
        print(f"  Cleared {provider.title} key for {args.user}")
        return

    if not args.key or not validate_api_key(provider, args.key):
        print(f"  [error] that doesn't look like a valid {provider.title} API key", file=sys.stderr)
        sys.exit(1)
    store.set_credential(args.user, provider, args.key.strip())
    print(f"  Saved {provider.title} key for {args.user}: {redact_key(args.key.strip())}")


def cmd_models(args):
    """List the model catalog."""
    from switchboard.catalog import MODEL_CATALOG, group_by_provider, visible_models

    if args.user:
        models = visible_models(_store().get_model_preferences(args.user))
    else:
        models = list(MODEL_CATALOG)
    for provider, group in group_by_provider(models).items():
        print(f"  {provider}")
        for model in group:
            print(f"    {model.id:<36} {model.name}")


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under multiple names."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="switchboard",
        description="Switchboard — multi-provider chat routing with OpenRouter fallback.",
        epilog="Run 'switchboard <command> --help' for command-specific options.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"switchboard {__version__}",
    )
    parser.add_argument("--config", "-c", default=None, help="Path to config.yaml")

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    def setup_serve(p):
        p.add_argument("--host", default=None, help="Override listen host")
        p.add_argument("--port", "-p", type=int, default=None, help="Override listen port")
        p.add_argument("--reload", action="store_true", help="Auto-reload on code changes (dev)")

    _add_command(sub, ["serve", "start", "dial"],
                 "Start the Switchboard HTTP server", cmd_serve, setup_serve)

    def setup_ask(p):
        p.add_argument("message", nargs="+", help="Message text")
        p.add_argument("--user", "-u", required=True, help="User id")
        p.add_argument("--model", "-m", required=True, help="Model id, e.g. openai/gpt-4.1")
        p.add_argument("--context", default=None, help="Context id (default: new context)")

    _add_command(sub, ["ask", "send"],
                 "Dispatch one message and print the reply", cmd_ask, setup_ask)

    def setup_route(p):
        p.add_argument("model", help="Model id")
        p.add_argument("--user", "-u", required=True, help="User id")

    _add_command(sub, ["route", "trace"],
                 "Show where a model id would be routed", cmd_route, setup_route)

    def setup_keys(p):
        p.add_argument("action", choices=["set", "clear", "show"])
        p.add_argument("provider", nargs="?", default=None,
                       choices=["openai", "anthropic", "google", "openrouter"])
        p.add_argument("key", nargs="?", default=None)
        p.add_argument("--user", "-u", required=True, help="User id")

    _add_command(sub, ["keys", "key"],
                 "Set, clear or show a user's provider keys", cmd_keys, setup_keys)

    def setup_models(p):
        p.add_argument("--user", "-u", default=None, help="Apply this user's visibility preferences")

    _add_command(sub, ["models", "catalog"],
                 "List the model catalog by provider", cmd_models, setup_models)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return

    _load(args)
    args.func(args)


if __name__ == "__main__":
    main()
