"""Fast3R CLI entrypoints."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from .chat.loop import ChatLoop
from .chat.session import AssistantSession
from .config import EngineConfig, load_dotenv
from .errors import Fast3rError
from .media.recording import Recorder
from .media.store import MediaStore
from .providers import build_gateway
from .providers.base import AssistantGateway
from .reconstruction.jobs import CAMERA_INTRINSICS, MODES, OPTIMIZATIONS, RESOLUTIONS, JobSettings, ReconstructionJobStore
from .reconstruction.scheduler import CompletionScheduler, ReconstructionService
from .runs.events import EventWriter
from .utils import serialize


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="fast3r", description="Fast3R reconstruction assistant")
    sub = parser.add_subparsers(dest="command")

    chat = sub.add_parser("chat", help="Interactive assistant chat")
    chat.add_argument("--events", help="Path to events.jsonl")
    chat.add_argument("--dryrun", action="store_true", help="Use the offline gateway")
    chat.add_argument("--thinking", action="store_true", help="Start with extended reasoning enabled")
    chat.add_argument("--image-size", dest="image_size", default="1K", choices=("1K", "2K", "4K"))

    advise = sub.add_parser("advise", help="Ask for recommended reconstruction settings")
    advise.add_argument("--images", type=int, required=True, help="Number of source images")
    advise.add_argument("--subject", required=True, help="What the images show")
    advise.add_argument("--events")
    advise.add_argument("--dryrun", action="store_true")

    reconstruct = sub.add_parser("reconstruct", help="Submit a reconstruction job")
    reconstruct.add_argument("images", nargs="+", help="Source image paths")
    reconstruct.add_argument("--name", required=True, help="Job label")
    reconstruct.add_argument("--advise", action="store_true", help="Let the assistant pick the settings")
    reconstruct.add_argument("--resolution", default="1024", choices=RESOLUTIONS)
    reconstruct.add_argument("--mode", default="pointcloud", choices=MODES)
    reconstruct.add_argument("--camera", dest="camera_intrinsics", default="auto", choices=CAMERA_INTRINSICS)
    reconstruct.add_argument("--optimization", default="quality", choices=OPTIMIZATIONS)
    reconstruct.add_argument("--delay", type=float, help="Seconds until the placeholder pipeline completes")
    reconstruct.add_argument("--events")
    reconstruct.add_argument("--dryrun", action="store_true")

    return parser


def _config_from_args(args: argparse.Namespace) -> EngineConfig:
    return EngineConfig.from_env(
        dryrun=True if getattr(args, "dryrun", False) else None,
        reconstruction_delay_s=getattr(args, "delay", None),
    )


def _events_from_args(args: argparse.Namespace) -> EventWriter | None:
    if not getattr(args, "events", None):
        return None
    return EventWriter(Path(args.events))


def _gateway(config: EngineConfig, events: EventWriter | None) -> AssistantGateway:
    return build_gateway(config, media=MediaStore(config.media_dir), events=events)


async def _chat(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    events = _events_from_args(args)
    session = AssistantSession(_gateway(config, events), recorder=Recorder(events=events), events=events)
    session.use_extended_reasoning = bool(args.thinking)
    session.image_size = args.image_size
    await ChatLoop(session).run()
    return 0


async def _advise(args: argparse.Namespace) -> int:
    if args.images <= 0:
        print("--images must be positive")
        return 1
    config = _config_from_args(args)
    advice = await _gateway(config, _events_from_args(args)).request_advice(args.images, args.subject)
    print(json.dumps({"settings": serialize(advice.settings), "explanation": advice.explanation}, indent=2))
    return 0


async def _reconstruct(args: argparse.Namespace) -> int:
    config = _config_from_args(args)
    events = _events_from_args(args)
    missing = [path for path in args.images if not Path(path).exists()]
    if missing:
        print(f"Image not found: {', '.join(missing)}")
        return 1
    settings = JobSettings(
        resolution=args.resolution,
        mode=args.mode,
        camera_intrinsics=args.camera_intrinsics,
        optimization=args.optimization,
    )
    if args.advise:
        advice = await _gateway(config, events).request_advice(len(args.images), args.name)
        settings = advice.settings
        print(f"Advice: {advice.explanation}")

    store = ReconstructionJobStore(events)
    scheduler = CompletionScheduler(store, config.reconstruction_delay_s)
    service = ReconstructionService(store, scheduler)
    try:
        job_id = service.submit(args.name, args.images, settings)
    except ValueError as exc:
        print(str(exc))
        return 1
    print(json.dumps(store.get(job_id).to_payload(), indent=2))
    while scheduler.pending():
        await asyncio.sleep(min(0.5, config.reconstruction_delay_s or 0.5))
    print(json.dumps(store.get(job_id).to_payload(), indent=2))
    return 0


def main() -> None:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args()
    handlers = {"chat": _chat, "advise": _advise, "reconstruct": _reconstruct}
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        raise SystemExit(1)
    try:
        raise SystemExit(asyncio.run(handler(args)))
    except Fast3rError as exc:
        print(f"{exc.kind}: {exc}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
