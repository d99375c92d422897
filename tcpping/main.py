import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

from . import auth
from .config import REQUIRED_ENV_VARS, ProbeConfig, Settings
from .errors import AllAttemptsFailedError, ConfigError, TargetValidationError
from .handlers import round_half_up
from .logger import level_for_env, setup_logging
from .prober import LatencyProber
from .ui import ServiceUI
from .utils import parse_ports


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tcpping", description="TCP connect latency service")
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP service (default)")
    serve.add_argument("--port", type=int, help="Listen port (Default: $PORT or 8080)")

    probe = sub.add_parser("probe", help="Measure latency to an IPv4 address once")
    probe.add_argument("ip", help="Target IPv4 address")
    probe.add_argument("-p", "--ports", help="Candidate ports in try order (Default: 443,80,22)")
    probe.add_argument("-a", "--attempts", type=int, default=3, help="Attempts (Default: 3)")
    probe.add_argument("--timeout", type=int, default=2000, help="Per-connection timeout in ms (Default: 2000)")
    probe.add_argument("--delay", type=int, default=100, help="Delay between attempts in ms (Default: 100)")

    sub.add_parser("keygen", help="Interactive API key / JWT generator")
    return parser


def _memory_mb():
    try:
        import resource
    except ImportError:
        # POSIX only
        return None
    # ru_maxrss is KiB on Linux
    return round(resource.getrusage(resource.RUSAGE_SELF).ru_maxrss / 1024)


def load_settings(ui: ServiceUI) -> Settings:
    ui.display_env_validation(REQUIRED_ENV_VARS, os.environ)
    try:
        return Settings.from_env()
    except ConfigError as e:
        if e.missing:
            ui.display_missing_env(e.missing)
        else:
            ui.show_message(str(e))
        sys.exit(1)


def run_serve(args, ui: ServiceUI):
    from .server import start_server

    ui.display_welcome()
    ui.display_startup(_memory_mb())
    settings = load_settings(ui)
    setup_logging(level_for_env(settings.env))

    port = args.port or settings.port
    ui.display_ready(port)
    start_server(settings, port=port)


def run_probe(args, ui: ServiceUI) -> int:
    setup_logging(level_for_env(os.environ.get("NODE_ENV", "development")))

    try:
        overrides = {"attempts": args.attempts, "timeout_ms": args.timeout, "delay_ms": args.delay}
        if args.ports:
            overrides["ports"] = parse_ports(args.ports)
        config = ProbeConfig(**overrides)
    except ValidationError as e:
        ui.show_message(f"Invalid probe options: {e}")
        return 2

    ui.display_probe_start(args.ip, config)
    try:
        with ui.console.status("[cyan]Measuring..."):
            result = asyncio.run(LatencyProber(config).measure(args.ip))
    except TargetValidationError as e:
        ui.show_message(str(e))
        return 2
    except AllAttemptsFailedError as e:
        ui.show_message(f"{e} ({', '.join(str(p) for p in e.ports)})")
        return 1

    ui.display_probe_result(result, round_half_up(result.average))
    return 0


def run_keygen(ui: ServiceUI):
    """
    Interactive menu mirroring the service's token flavours. JWT options
    need INTERNAL_API_KEY, since tokens are signed with it.
    """
    def secret():
        value = os.environ.get("INTERNAL_API_KEY")
        if not value:
            raise ConfigError("INTERNAL_API_KEY is not set; generate one with option 2 first",
                              ["INTERNAL_API_KEY"])
        return value

    port = os.environ.get("PORT", "8080")

    while True:
        ui.display_keygen_menu()
        choice = ui.get_keygen_choice()
        try:
            if choice == 1:
                token = auth.create_jwt(secret(), "test-client", 1)
                ui.show_token(token, "Token expires in 1 minute", port=port, curl=True)
            elif choice == 2:
                ui.show_api_key(auth.generate_api_key())
            elif choice == 3:
                ui.show_api_key(auth.generate_secure_api_key())
            elif choice == 4:
                issuer = ui.ask("Enter issuer name", default="test-client")
                expiry = ui.ask_int("Enter token expiry in minutes", default=1)
                token = auth.create_jwt(secret(), issuer, expiry)
                ui.show_token(token, f"Token expires in {expiry} minute(s)", port=port, curl=True)
            elif choice == 5:
                name = ui.ask("Enter service name", default="api-service")
                days = ui.ask_int("Enter token validity in days", default=365)
                token = auth.create_service_jwt(secret(), name, days)
                ui.show_token(token, f"Token expires in {days} days. Store it securely.")
            elif choice == 6:
                name = ui.ask("Enter service name", default="api-service")
                if ui.confirm("WARNING: This token NEVER expires. Continue?"):
                    token = auth.create_permanent_service_jwt(secret(), name)
                    ui.show_token(token, "This token NEVER expires. Consider time-limited tokens instead.")
                else:
                    ui.show_message("Operation cancelled.", style="yellow")
            else:
                ui.show_message("Goodbye!", style="bold green")
                return
        except ConfigError as e:
            ui.show_message(str(e))


def main(argv=None):
    load_dotenv()
    args = build_parser().parse_args(argv)
    ui = ServiceUI()

    try:
        if args.command == "probe":
            sys.exit(run_probe(args, ui))
        elif args.command == "keygen":
            run_keygen(ui)
        else:
            if args.command is None:
                args.port = None
            run_serve(args, ui)
    except KeyboardInterrupt:
        ui.console.print("\n[yellow]Interrupted by user.[/yellow]")


if __name__ == "__main__":
    main()
