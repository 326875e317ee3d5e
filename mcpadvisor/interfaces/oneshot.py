"""One-shot interface: run a single server search, print the ranked list, exit."""

from __future__ import annotations

import argparse
import asyncio
import sys

from mcpadvisor.contracts.server_search_v1 import RerankOptions, SearchQuery
from mcpadvisor.core.config import config
from mcpadvisor.core.errors import AdvisorError
from mcpadvisor.orchestrators.search import (
    SearchContext,
    ServerSearchOrchestrator,
    ServerSearchResponse,
    build_providers,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcpadvisor search",
        description="Recommend MCP servers for a task description.",
    )
    parser.add_argument("task", nargs="*", help="What you want to do (read from stdin if omitted)")
    parser.add_argument("--keyword", "-k", action="append", default=[], dest="keywords")
    parser.add_argument("--capability", "-c", action="append", default=[], dest="capabilities")
    parser.add_argument("--limit", "-n", type=int, default=None)
    parser.add_argument("--min-score", type=float, default=None)
    parser.add_argument(
        "--provider",
        "-p",
        action="append",
        default=None,
        dest="providers",
        help="Provider to query (repeatable); defaults to MCPADVISOR_PROVIDERS",
    )
    parser.add_argument("--offline-only", action="store_true", help="Query only the bundled corpus")
    parser.add_argument("--json", action="store_true", help="Print the full JSON response")
    return parser


def format_response(response: ServerSearchResponse) -> str:
    if not response.results:
        lines = ["No matching MCP servers found."]
    else:
        lines = []
        for i, r in enumerate(response.results, 1):
            lines.append(f"{i}. {r.title}  (score {r.effective_score:.3f}, via {r.provider_name})")
            if r.description:
                lines.append(f"   {r.description}")
            if r.source_url:
                lines.append(f"   {r.source_url}")
    for err in response.errors:
        lines.append(f"! {err}")
    return "\n".join(lines)


async def run_search(
    query: SearchQuery,
    *,
    providers: list[str],
    options: RerankOptions,
    as_json: bool = False,
) -> int:
    async with SearchContext(config) as context:
        try:
            registered = build_providers(providers, context, config)
        except ValueError as e:
            print(f"Error: {e}")
            return 2
        orchestrator = ServerSearchOrchestrator(registered, config=config, context=context)
        try:
            response = await orchestrator.search(query, options)
        except AdvisorError as e:
            print(f"Error: {e}")
            return 1

    if as_json:
        print(response.model_dump_json(indent=2))
    else:
        print(format_response(response))
    return 0


def main(argv: list[str]) -> int:
    args = build_parser().parse_args(argv)
    text = " ".join(args.task).strip()
    if not text:
        text = sys.stdin.read().strip()
    if not text:
        print("Error: task description must not be empty")
        return 2

    query = SearchQuery(
        task_description=text,
        keywords=args.keywords,
        capabilities=args.capabilities,
    )
    overrides: dict = {}
    if args.limit is not None:
        overrides["limit"] = args.limit
    if args.min_score is not None:
        overrides["min_score"] = args.min_score

    if args.offline_only:
        providers = ["offline"]
    else:
        providers = args.providers or list(config.providers)

    return asyncio.run(
        run_search(
            query,
            providers=providers,
            options=RerankOptions(**overrides),
            as_json=args.json,
        )
    )
