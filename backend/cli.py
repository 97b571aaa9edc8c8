"""Command-line entry point for generating and publishing packages."""

from argparse import ArgumentParser, Namespace
import asyncio
import json
import logging
import os
from pathlib import Path

from agents.orchestrator import PipelineOrchestrator
from config import get_settings
from db.database import init_db
from models.package import Idea
from services.llm_service import get_llm_service
from services.publisher import PackageNotFoundError, Publisher

logger = logging.getLogger("hero_factory")


def get_args(argv: list[str] | None = None) -> Namespace:
    """Get the command line arguments."""
    parser = ArgumentParser(prog="hero-factory")
    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="Generate, test and publish packages from ideas.")
    generate.add_argument("--prompt", type=str, help="Theme of the package to invent.")
    generate.add_argument("--functions", type=int, default=5, help="Number of functions per package.")
    generate.add_argument("--prefix", type=str, default="", help="Prefix for the package name.")
    generate.add_argument(
        "--ideas",
        type=Path,
        help="JSON file with a list of {prompt, number_of_functions, name_prefix} objects.",
    )

    publish = commands.add_parser("publish", help="Resume the publish chain of staged packages.")
    publish.add_argument("names", nargs="*", help="Packages to publish; all unfinished ones by default.")

    return parser.parse_args(argv)


def load_ideas(args: Namespace) -> list[Idea]:
    if args.ideas:
        return [Idea(**item) for item in json.loads(args.ideas.read_text(encoding="utf-8"))]
    if args.prompt:
        return [Idea(prompt=args.prompt, number_of_functions=args.functions, name_prefix=args.prefix)]
    raise SystemExit("generate needs --prompt or --ideas")


async def publish_names(publisher: Publisher, names: list[str], stop_on_failure: bool = True) -> dict:
    """Publish the named packages in order; unknown names are reported, not raised."""
    results = {}
    for name in names:
        try:
            results[name] = await publisher.publish(name)
        except PackageNotFoundError:
            logger.error(f"Unknown package {name}")
            results[name] = False
        if not results[name] and stop_on_failure:
            break
    return results


async def run(args: Namespace) -> dict:
    settings = get_settings()
    for directory in (settings.SCHEMAS_DIR, settings.STAGING_DIR, settings.PUBLISHED_DIR):
        os.makedirs(directory, exist_ok=True)
    await init_db()

    if args.command == "generate":
        orchestrator = PipelineOrchestrator(get_llm_service(), settings)
        return await orchestrator.run(load_ideas(args))

    publisher = Publisher(settings)
    if args.names:
        return await publish_names(publisher, args.names, settings.STOP_ON_PUBLISH_FAILURE)
    return await publisher.publish_pending()


def main() -> None:
    """Run the main function."""
    args = get_args()
    logging.basicConfig(
        level=get_settings().LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    summary = asyncio.run(run(args))
    print(json.dumps(summary, indent=2, default=str))


if __name__ == "__main__":
    main()
