# backend/cli.py
# ──────────────────────────────────────────────────────────────────────────────
# Command-line access to the pathway engine and the remote pathway service.
# - preview: assemble locally and print the JSON graph (no network)
# - create:  assemble and publish (requires BLAND_API_KEY)
# - list | get | delete: manage remote pathways
# ──────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from dotenv import load_dotenv

from engine.assembler import (
    AssemblyOptions,
    AssemblyResult,
    FeatureToggles,
    GlobalNodeOptions,
    KnowledgeBaseEntry,
    PathwayAssembler,
    TransferTarget,
    WebhookIntegration,
)

from .bland_client import PathwayServiceClient
from .config import Settings, get_settings

FEATURES = ("dynamic_data", "custom_tools", "ai_features", "fine_tuning", "analytics")


def _pair(value: str) -> Tuple[str, str]:
    name, sep, rest = value.partition("=")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"expected NAME=VALUE, got {value!r}")
    return name.strip(), rest.strip()


def _remote(settings: Settings) -> PathwayServiceClient:
    if not settings.remote_enabled:
        raise RuntimeError("Missing required environment variable: BLAND_API_KEY")
    return PathwayServiceClient(
        settings.bland_api_key or "",
        settings.bland_base_url,
        timeout=settings.request_timeout,
    )


def _description(args: argparse.Namespace) -> str:
    if args.description_file:
        return Path(args.description_file).read_text(encoding="utf-8")
    return args.description or ""


def _options(args: argparse.Namespace) -> AssemblyOptions:
    return AssemblyOptions(
        webhooks=[WebhookIntegration(name=n, url=u) for n, u in args.webhook],
        knowledge_bases=[KnowledgeBaseEntry(name=n, content=c) for n, c in args.kb],
        transfers=[TransferTarget(name=n, number=num) for n, num in args.transfer],
        features=FeatureToggles(**{f: True for f in args.feature}),
        global_nodes=GlobalNodeOptions(help=args.help_node, escalation=args.escalation_node),
        data_source_url=args.data_source_url,
    )


def assemble(args: argparse.Namespace) -> AssemblyResult:
    return PathwayAssembler().assemble(args.name, _description(args), _options(args))


def _emit(payload: object, output: Optional[str] = None) -> None:
    text = json.dumps(payload, indent=2)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        print(f"Wrote {output}")
    else:
        print(text)


def _add_build_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--name", required=True, help="Pathway name")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--description", help="Plain-language description of the call flow")
    src.add_argument("--description-file", help="Read the description from a file")
    parser.add_argument("--webhook", action="append", type=_pair, default=[], metavar="NAME=URL")
    parser.add_argument("--kb", action="append", type=_pair, default=[], metavar="NAME=CONTENT")
    parser.add_argument("--transfer", action="append", type=_pair, default=[], metavar="NAME=+E164")
    parser.add_argument("--feature", action="append", choices=FEATURES, default=[])
    parser.add_argument("--data-source-url", help="Base URL for dynamic data lookups")
    parser.add_argument("--help-node", action="store_true", help="Add a global help node")
    parser.add_argument("--escalation-node", action="store_true", help="Add a global escalation node")
    parser.add_argument("--output", "-o", help="Write JSON to this file instead of stdout")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="voicepath", description="Voice-agent pathway builder")
    sub = ap.add_subparsers(dest="cmd", required=True)

    _add_build_args(sub.add_parser("preview", help="Assemble a pathway and print it"))
    _add_build_args(sub.add_parser("create", help="Assemble a pathway and publish it"))

    sub.add_parser("list", help="List remote pathways")

    p_get = sub.add_parser("get", help="Fetch a remote pathway")
    p_get.add_argument("--id", required=True, dest="pathway_id")
    p_get.add_argument("--output", "-o")

    p_delete = sub.add_parser("delete", help="Delete a remote pathway")
    p_delete.add_argument("--id", required=True, dest="pathway_id")
    return ap


async def _run(args: argparse.Namespace, settings: Settings) -> None:
    if args.cmd == "preview":
        result = assemble(args)
        _emit(result.to_payload(), args.output)
        for skipped in result.report.skipped:
            print(f"skipped {skipped.kind} {skipped.name!r}: {skipped.reason}", file=sys.stderr)
    elif args.cmd == "create":
        remote = _remote(settings)
        result = assemble(args)
        pathway_id = await remote.publish(result.graph)
        summary = result.report.to_summary()
        print(f"Pathway created: id={pathway_id} nodes={len(result.graph.nodes)} edges={len(result.graph.edges)}")
        for skipped in summary["skipped"]:
            print(f"skipped {skipped['kind']} {skipped['name']!r}: {skipped['reason']}", file=sys.stderr)
    elif args.cmd == "list":
        for item in await _remote(settings).list_pathways():
            print(f"{item.get('pathway_id')}\t{item.get('name') or ''}")
    elif args.cmd == "get":
        _emit(await _remote(settings).get_pathway(args.pathway_id), args.output)
    elif args.cmd == "delete":
        await _remote(settings).delete_pathway(args.pathway_id)
        print(f"Pathway deleted: id={args.pathway_id}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        asyncio.run(_run(args, get_settings()))
        return 0
    except (RuntimeError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
