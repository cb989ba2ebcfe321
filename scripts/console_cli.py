"""CLI de la console de stock : connexion, consultation et export des jeux de données."""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys
from pathlib import Path as _PathHelper

sys.path.append(str(_PathHelper(__file__).resolve().parents[1]))

import httpx
import pandas as pd

from core.datasets import DATASETS, UnknownDatasetError, get_dataset
from core.query import InvalidQuerySpec
from core.remote import (
    ClientSideDataSource,
    ExportClient,
    ExportError,
    RemoteServiceError,
    UnauthorizedError,
    build_data_source,
    export_csv,
)
from core.session import ConsoleSession, FileTokenStore, NotAuthenticated
from core.settings import AppSettings


def _parse_filters(entries: list[str] | None) -> dict[str, str]:
    filters: dict[str, str] = {}
    for entry in entries or []:
        key, sep, value = entry.partition("=")
        if not sep or not key.strip():
            raise InvalidQuerySpec(f"Filtre invalide '{entry}' (attendu cle=valeur)")
        filters[key.strip()] = value.strip()
    return filters


def _add_query_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("dataset", choices=sorted(DATASETS), help="Jeu de données.")
    parser.add_argument("-q", "--search", default=None, help="Recherche plein texte.")
    parser.add_argument("--sort", default=None, help="Tri 'champ,asc|desc'.")
    parser.add_argument("--from", dest="date_from", default=None, help="Début de période (ISO 8601).")
    parser.add_argument("--to", dest="date_to", default=None, help="Fin de période (ISO 8601).")
    parser.add_argument(
        "--filter",
        dest="filters",
        action="append",
        metavar="CLE=VALEUR",
        help="Filtre exact, répétable (ex. warehouseId=7).",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Console du service de stock.")
    parser.add_argument("--session-file", default=None, help="Fichier de session (CONSOLE_SESSION_FILE).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Logs détaillés.")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Ouvre une session.")
    login.add_argument("--username", required=True)
    login.add_argument("--password", default=None, help="Demandé interactivement si absent.")

    sub.add_parser("logout", help="Ferme la session.")

    listing = sub.add_parser("list", help="Affiche une page d'un jeu de données.")
    _add_query_arguments(listing)
    listing.add_argument("--page", type=int, default=0)
    listing.add_argument("--size", type=int, default=10)
    listing.add_argument("--json", action="store_true", help="Sortie JSON.")

    export = sub.add_parser("export", help="Exporte un jeu de données filtré.")
    _add_query_arguments(export)
    export.add_argument("--format", dest="fmt", choices=("pdf", "xlsx", "csv"), default="xlsx")
    export.add_argument("--out", default=None, help="Dossier cible (EXPORT_DIR).")
    return parser


def _make_spec(args: argparse.Namespace, dataset, *, paged: bool):
    return dataset.make_spec(
        search=args.search,
        filters=_parse_filters(args.filters),
        date_from=args.date_from,
        date_to=args.date_to,
        sort=args.sort,
        page=getattr(args, "page", 0) if paged else 0,
        size=getattr(args, "size", 10) if paged else 10,
    )


def _run_list(args: argparse.Namespace, session: ConsoleSession, settings: AppSettings) -> int:
    session.require()
    dataset = get_dataset(args.dataset)
    if not session.can_access(dataset.required_role):
        print(f"Accès refusé: rôle {dataset.required_role} requis pour {dataset.name}.", file=sys.stderr)
        return 1
    spec = _make_spec(args, dataset, paged=True)
    with session.client() as client:
        source = build_data_source(dataset, client, mode=settings.mode_for(dataset.name))
        page = source.query(spec)

    rows = [row.as_dict() for row in page.content]
    if args.json:
        payload = {
            "content": rows,
            "number": page.page_index,
            "size": page.size,
            "totalPages": page.page_count,
            "totalElements": page.total_count,
        }
        print(json.dumps(payload, default=str, ensure_ascii=False, indent=2))
    else:
        if rows:
            print(pd.DataFrame(rows, columns=list(dataset.schema.field_names)).to_string(index=False))
        else:
            print("(aucune ligne)")
        print(f"Page {page.page_index + 1}/{page.page_count} - {page.total_count} ligne(s)")
    return 0


def _run_export(args: argparse.Namespace, session: ConsoleSession, settings: AppSettings) -> int:
    session.require()
    dataset = get_dataset(args.dataset)
    if not session.can_access(dataset.required_role):
        print(f"Accès refusé: rôle {dataset.required_role} requis pour {dataset.name}.", file=sys.stderr)
        return 1
    spec = _make_spec(args, dataset, paged=False)
    with session.client() as client:
        if args.fmt == "csv":
            artifact = export_csv(ClientSideDataSource(dataset, client).select(spec), dataset)
        else:
            artifact = ExportClient(client).fetch(dataset, args.fmt, spec)
    target = artifact.save(args.out or settings.export_dir)
    print(f"Export enregistré: {target}")
    return 0


def main(argv: list[str] | None = None, *, transport: httpx.BaseTransport | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    settings = AppSettings.load()
    store = FileTokenStore(args.session_file or settings.session_file)
    session = ConsoleSession(
        settings.stock_api_base_url,
        store=store,
        timeout=settings.stock_api_timeout,
        transport=transport,
    )
    session.on_unauthorized(lambda: print("Session expirée: reconnectez-vous (login).", file=sys.stderr))

    try:
        if args.command == "login":
            password = args.password if args.password is not None else getpass.getpass("Mot de passe: ")
            state = session.login(args.username, password)
            roles = ", ".join(sorted(state.roles)) or "-"
            print(f"Connecté en tant que {state.username} (rôles: {roles})")
            return 0
        if args.command == "logout":
            session.logout()
            print("Session fermée.")
            return 0
        if args.command == "list":
            return _run_list(args, session, settings)
        if args.command == "export":
            return _run_export(args, session, settings)
    except NotAuthenticated as exc:
        print(str(exc), file=sys.stderr)
        return 2
    except UnauthorizedError as exc:
        print(f"Non autorisé: {exc}", file=sys.stderr)
        return 2
    except (InvalidQuerySpec, UnknownDatasetError) as exc:
        print(f"Requête invalide: {exc}", file=sys.stderr)
        return 1
    except (ExportError, RemoteServiceError) as exc:
        print(f"Erreur du service de stock: {exc}", file=sys.stderr)
        return 1
    parser.error(f"Commande inconnue: {args.command}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
