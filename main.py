#!/usr/bin/env python3
"""
MediaQueue - Main Entry Point

Batch video and image generation across several AI providers, with a global
concurrency limit, a per-minute rate limit and automatic retries.

Usage:
    # Run a batch to completion
    python main.py run --model veo-2.0-generate-001 --prompts-file prompts.txt

    # Start the API server
    python main.py server

    # Manage provider keys
    python main.py keys set gemini <api-key>
    python main.py keys list
"""

import argparse
import asyncio
import logging
import mimetypes
import os
import signal
import sys
from pathlib import Path
from typing import Optional

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("mediaqueue")


def format_job_line(job) -> str:
    """One console line describing a job's current state."""
    line = f"[{job.status.value.upper():<10}] {job.id[:8]} {job.model:<24} {job.prompt[:40]}"
    if job.retry_count:
        line += f" (retry {job.retry_count})"
    if job.error:
        line += f" - {job.error}"
    if job.result_url:
        line += f" -> {job.result_url[:60]}"
    elif job.result_urls:
        line += f" -> {len(job.result_urls)} image(s)"
    return line


def build_templates(
    model: str,
    input_kind: str,
    aspect_ratio: str,
    outputs: int,
    prompts: list[str],
    image_path: Optional[str] = None,
) -> list[dict]:
    """Job templates for the run command, one per explicit prompt."""
    template = {
        "model": model,
        "input_kind": input_kind,
        "aspect_ratio": aspect_ratio,
        "output_count": outputs,
    }
    if image_path:
        path = Path(image_path)
        template["image"] = {
            "data": path.read_bytes(),
            "mime_type": mimetypes.guess_type(path.name)[0] or "image/png",
            "name": path.name,
        }
    if not prompts:
        # Settings-only template used by the bulk prompts
        return [template]
    return [{**template, "prompt": prompt} for prompt in prompts]


async def run_batch(
    model: str,
    input_kind: str = "text_to_video",
    aspect_ratio: str = "16:9",
    outputs: int = 1,
    prompts: Optional[list[str]] = None,
    prompts_file: Optional[str] = None,
    image_path: Optional[str] = None,
    output_dir: Optional[str] = None,
    download: bool = False,
) -> bool:
    """
    Enqueue a batch of jobs and drive it until nothing can progress.

    Returns:
        True if every job completed
    """
    from core.config import get_config
    from services.generation import ResultDownloader, build_dispatchers
    from services.jobs import CredentialStore, JobStatus, Scheduler, build_batch

    config = get_config()
    for issue in config.validate():
        logger.warning(f"Config: {issue}")

    bulk_prompts = Path(prompts_file).read_text() if prompts_file else ""
    specs = build_batch(
        build_templates(model, input_kind, aspect_ratio, outputs, prompts or [], image_path),
        bulk_prompts,
    )
    if not specs:
        logger.error("No prompts given (use --prompt or --prompts-file)")
        return False

    credentials = CredentialStore.from_config(config)
    scheduler = Scheduler(
        dispatchers=build_dispatchers(config),
        credentials=credentials,
        config=config,
        on_update=lambda job: print(format_job_line(job)),
    )

    jobs = scheduler.enqueue(specs)
    logger.info(f"Submitted {len(jobs)} job(s)")

    missing = {job.provider.value for job in jobs if credentials.lookup(job.provider) is None}
    if missing:
        logger.warning(
            f"No API key for {', '.join(sorted(missing))}; those jobs stay pending "
            f"(python main.py keys set <provider> <key>)"
        )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, scheduler.stop)

    try:
        await scheduler.run_until_idle()
    finally:
        await scheduler.close()

    snapshot = scheduler.snapshot()
    counts = scheduler.store.counts()
    print()
    print(
        f"Completed: {counts['completed']}  Failed: {counts['failed']}  "
        f"Pending: {counts['pending']}  Processing: {counts['processing']}"
    )
    if scheduler.is_halted:
        print("Processing stopped: API quota reached. Save a new key and run again.")

    if download:
        downloader = ResultDownloader(credentials)
        try:
            target = Path(output_dir) if output_dir else config.storage.output_dir
            paths = await downloader.download_all(snapshot, target)
            print(f"Saved {len(paths)} file(s) to {target}")
        finally:
            await downloader.close()

    return all(job.status == JobStatus.COMPLETED for job in snapshot)


def print_models():
    from core.providers import IMAGE_MODELS, VIDEO_MODELS

    print("Video models:")
    for info in VIDEO_MODELS:
        print(f"  {info.id:<26} {info.name:<28} provider={info.provider.value}")
    print("Image models:")
    for info in IMAGE_MODELS:
        print(f"  {info.id:<26} {info.name:<28} provider={info.provider.value}")


def manage_keys(action: str, provider: Optional[str] = None, key: Optional[str] = None) -> bool:
    from services.jobs import CredentialStore

    store = CredentialStore.from_config()

    if action == "list":
        for name, masked in store.masked().items():
            print(f"  {name:<8} {masked or '(not set)'}")
        return True

    if not store.save(provider, key):
        print("API key must not be blank")
        return False
    print(f"Saved key for {provider}")
    return True


def main():
    from core.providers import ASPECT_RATIOS, Provider

    parser = argparse.ArgumentParser(
        description="MediaQueue - batch AI video and image generation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # One job per line of prompts.txt, downloaded when done
    python main.py run --model veo-2.0-generate-001 --prompts-file prompts.txt --download

    # Four images for each of two prompts
    python main.py run --model imagen-4.0-generate-001 --kind text_to_image \\
        --outputs 4 --prompt "A lighthouse at dawn" --prompt "A fox in snow"

    # Animate a still image
    python main.py run --model veo-2.0-generate-001 --kind image_to_video \\
        --image photo.png --prompt "Slow zoom in"
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run a batch of jobs to completion")
    run_parser.add_argument("--model", "-m", required=True, help="Model id (see: models)")
    run_parser.add_argument(
        "--kind",
        "-k",
        choices=["text_to_video", "image_to_video", "text_to_image"],
        default="text_to_video",
        help="Input kind",
    )
    run_parser.add_argument("--prompt", "-p", action="append", default=[], help="Prompt (repeatable)")
    run_parser.add_argument("--prompts-file", "-f", help="File with one prompt per line")
    run_parser.add_argument("--aspect-ratio", "-a", choices=ASPECT_RATIOS, default="16:9")
    run_parser.add_argument("--outputs", "-n", type=int, default=1, help="Outputs per job (1-4)")
    run_parser.add_argument("--image", "-i", help="Source image for image_to_video")
    run_parser.add_argument("--download", "-d", action="store_true", help="Save results when done")
    run_parser.add_argument("--output", "-o", help="Output directory for --download")

    # Server command
    server_parser = subparsers.add_parser("server", help="Start the API server")
    server_parser.add_argument("--host", default="0.0.0.0", help="Host to bind")
    server_parser.add_argument("--port", type=int, default=8765, help="Port to bind")

    # Models command
    subparsers.add_parser("models", help="List available models")

    # Keys command
    keys_parser = subparsers.add_parser("keys", help="Manage provider API keys")
    keys_sub = keys_parser.add_subparsers(dest="action", required=True)
    keys_sub.add_parser("list", help="Show configured keys (masked)")
    set_parser = keys_sub.add_parser("set", help="Save a key for a provider")
    set_parser.add_argument("provider", choices=[p.value for p in Provider])
    set_parser.add_argument("key", help="API key")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "run":
        try:
            ok = asyncio.run(
                run_batch(
                    model=args.model,
                    input_kind=args.kind,
                    aspect_ratio=args.aspect_ratio,
                    outputs=args.outputs,
                    prompts=args.prompt,
                    prompts_file=args.prompts_file,
                    image_path=args.image,
                    output_dir=args.output,
                    download=args.download,
                )
            )
        except (ValueError, OSError) as e:
            logger.error(f"Invalid batch: {e}")
            sys.exit(2)
        sys.exit(0 if ok else 1)

    elif args.command == "server":
        from services.api import run_server

        run_server(host=args.host, port=args.port)

    elif args.command == "models":
        print_models()

    elif args.command == "keys":
        ok = manage_keys(args.action, getattr(args, "provider", None), getattr(args, "key", None))
        sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
