import argparse
import json
import logging
import sys
from collections.abc import Sequence
from datetime import date

from scheduler.config import settings
from scheduler.sentry import flush as sentry_flush
from scheduler.sentry import capture_exception, init_sentry, is_enabled
from scheduler.services.appointments import AppointmentBook, AppointmentNotFoundError
from scheduler.services.clients import ClientNotFoundError, ClientRegistry, ClientValidationError
from scheduler.services.schemas import ClientStatus
from scheduler.services.storage import get_store

logger = logging.getLogger(__name__)

STATUS_CHOICES = [status.value for status in ClientStatus]


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _extractor(rules_only: bool = False):
    if rules_only:
        from scheduler.services.extractor import get_extractor

        return get_extractor()

    from scheduler.services.smart_extractor import get_smart_extractor

    return get_smart_extractor()


def parse_text(args: argparse.Namespace) -> int:
    parsed = _extractor(args.rules_only).extract(" ".join(args.text))
    if parsed is None:
        print("Nothing to parse")
        return 1

    print(json.dumps(parsed.to_dict(), indent=2))
    return 0


def add_appointment(args: argparse.Namespace) -> int:
    book = AppointmentBook(get_store(), extractor=_extractor(args.rules_only))
    appointment = book.add_from_text(" ".join(args.text))
    if appointment is None:
        print("Nothing to parse")
        return 1

    print(f"Saved appointment {appointment.id}")
    print(f"  Name: {appointment.name}")
    print(f"  Phone: {appointment.phone}")
    print(f"  When: {appointment.datetime}")
    print(f"  Details: {appointment.details}")
    return 0


def list_appointments(args: argparse.Namespace) -> int:
    book = AppointmentBook(get_store(), extractor=_extractor(rules_only=True))
    appointments = book.list_appointments(on=args.date)

    if not appointments:
        print("No appointments")
        return 0

    clients = ClientRegistry(get_store()).list_clients()
    client_names = {client.id: client.name for client in clients}
    for appointment in appointments:
        line = (
            f"{appointment.datetime}  {appointment.name} ({appointment.phone})"
            f" - {appointment.details}  [{appointment.id}]"
        )
        if appointment.client_id:
            client_name = client_names.get(appointment.client_id, appointment.client_id)
            line += f"\n    Client: {client_name}"
        print(line)
    return 0


def delete_appointment(args: argparse.Namespace) -> int:
    book = AppointmentBook(get_store(), extractor=_extractor(rules_only=True))
    if not book.delete(args.id):
        raise AppointmentNotFoundError(args.id)
    print(f"Deleted appointment {args.id}")
    return 0


def link_appointment(args: argparse.Namespace) -> int:
    book = AppointmentBook(get_store(), extractor=_extractor(rules_only=True))
    if args.unlink:
        book.link_client(args.id, None)
        print(f"Unlinked appointment {args.id}")
        return 0

    if not args.client:
        raise ClientValidationError("A client id or phone is required")

    registry = ClientRegistry(get_store())
    try:
        client = registry.get(args.client)
    except ClientNotFoundError:
        found = registry.find_by_phone(args.client)
        if found is None:
            raise
        client = found

    book.link_client(args.id, client.id)
    print(f"Linked appointment {args.id} to {client.name} [{client.id}]")
    return 0


def list_clients(args: argparse.Namespace) -> int:
    clients = ClientRegistry(get_store()).list_clients()
    if not clients:
        print("No clients")
        return 0

    for client in clients:
        line = f"{client.name} ({client.phone}) - {client.status.value}  [{client.id}]"
        if client.notes:
            line += f"\n    {client.notes}"
        print(line)
    return 0


def add_client(args: argparse.Namespace) -> int:
    client = ClientRegistry(get_store()).add(
        args.name, args.phone, status=args.status, notes=args.notes
    )
    print(f"Added client {client.name} [{client.id}]")
    return 0


def update_client(args: argparse.Namespace) -> int:
    client = ClientRegistry(get_store()).update(
        args.id, name=args.name, phone=args.phone, status=args.status, notes=args.notes
    )
    print(f"Updated client {client.name} [{client.id}]")
    return 0


def delete_client(args: argparse.Namespace) -> int:
    if not ClientRegistry(get_store()).delete(args.id):
        raise ClientNotFoundError(args.id)
    print(f"Deleted client {args.id}")
    return 0


def check_config(args: argparse.Namespace) -> int:
    print("Quick Scheduler Configuration Check\n")

    checks = [
        ("DeepSeek API Key", settings.has_deepseek),
        ("Gemini API Key", settings.has_gemini),
        (f"LLM provider ({settings.llm_provider})", settings.has_llm),
        ("Sentry DSN", settings.has_sentry),
    ]
    for name, configured in checks:
        status = "OK" if configured else "MISSING"
        symbol = "+" if configured else "-"
        print(f"  [{symbol}] {name}: {status}")

    print(f"\n  Timezone: {settings.user_timezone}")
    print(f"  Sentry: {'active' if is_enabled() else 'inactive'}")
    print(f"  Data dir: {get_store().data_dir}")

    print()
    if settings.has_llm:
        print("Remote extraction enabled, rule-based extractor used as fallback.")
    else:
        print("Remote extraction disabled, using the rule-based extractor only.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quick-scheduler", description="Turn free text into scheduled appointments"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    parse_parser = subparsers.add_parser("parse", help="Parse text and print the extracted fields")
    parse_parser.add_argument("text", nargs="+", help="Free-text appointment description")
    parse_parser.add_argument(
        "--rules-only", action="store_true", help="Skip the remote LLM and use regex rules only"
    )
    parse_parser.set_defaults(handler=parse_text)

    add_parser = subparsers.add_parser("add", help="Parse text and save the appointment")
    add_parser.add_argument("text", nargs="+", help="Free-text appointment description")
    add_parser.add_argument("--rules-only", action="store_true", help="Skip the remote LLM")
    add_parser.set_defaults(handler=add_appointment)

    list_parser = subparsers.add_parser("list", help="List saved appointments")
    list_parser.add_argument("--date", type=date.fromisoformat, help="Only show YYYY-MM-DD")
    list_parser.set_defaults(handler=list_appointments)

    delete_parser = subparsers.add_parser("delete", help="Delete an appointment")
    delete_parser.add_argument("id", help="Appointment id")
    delete_parser.set_defaults(handler=delete_appointment)

    link_parser = subparsers.add_parser("link", help="Link an appointment to a client")
    link_parser.add_argument("id", help="Appointment id")
    link_parser.add_argument("client", nargs="?", help="Client id or phone number")
    link_parser.add_argument("--unlink", action="store_true", help="Detach the linked client")
    link_parser.set_defaults(handler=link_appointment)

    clients_parser = subparsers.add_parser("clients", help="Manage the client registry")
    clients_sub = clients_parser.add_subparsers(dest="clients_command", required=True)

    clients_sub.add_parser("list", help="List clients").set_defaults(handler=list_clients)

    client_add = clients_sub.add_parser("add", help="Add a client")
    client_add.add_argument("--name", required=True)
    client_add.add_argument("--phone", required=True)
    client_add.add_argument("--status", choices=STATUS_CHOICES, default=ClientStatus.LEAD.value)
    client_add.add_argument("--notes", default="")
    client_add.set_defaults(handler=add_client)

    client_update = clients_sub.add_parser("update", help="Update a client")
    client_update.add_argument("id", help="Client id")
    client_update.add_argument("--name")
    client_update.add_argument("--phone")
    client_update.add_argument("--status", choices=STATUS_CHOICES)
    client_update.add_argument("--notes")
    client_update.set_defaults(handler=update_client)

    client_delete = clients_sub.add_parser("delete", help="Delete a client")
    client_delete.add_argument("id", help="Client id")
    client_delete.set_defaults(handler=delete_client)

    subparsers.add_parser("check", help="Check configuration").set_defaults(handler=check_config)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "handler", None):
        parser.print_help()
        return 1

    setup_logging()

    # Initialize Sentry for error tracking (disabled if no DSN configured)
    init_sentry(
        dsn=settings.sentry_dsn if settings.has_sentry else None,
        environment=settings.sentry_environment,
    )

    try:
        return args.handler(args)
    except (ClientValidationError, ClientNotFoundError, AppointmentNotFoundError) as e:
        message = str(e)
        if isinstance(e, (ClientNotFoundError, AppointmentNotFoundError)):
            message = f"No such id: {e}"
        print(f"Error: {message}")
        return 1
    except Exception as e:
        capture_exception(e)
        raise
    finally:
        # Flush any pending Sentry events before exit
        sentry_flush(timeout=2.0)


if __name__ == "__main__":
    sys.exit(main())
