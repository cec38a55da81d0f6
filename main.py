"""
main.py — command line interface for the promo video engine
"""

import argparse
import logging
from pathlib import Path
from typing import List

from promo_engine.application.services.composition_service import CompositionService
from promo_engine.domain.errors import CompositionError
from promo_engine.domain.models.composition import (
    IMAGE_MODES,
    CompositionRequest,
    EncodeQuality,
    ProgressEvent,
    TextCard,
    TransitionSpec,
)
from promo_engine.domain.platforms import list_platforms
from promo_engine.domain.sizing import ANCHORS
from promo_engine.infra.logging import setup_logging
from promo_engine.infra.settings import load_settings

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".bmp")


def collect_images(image_args: List[str], image_dir: str = None) -> List[Path]:
    """Images given explicitly, or every image in a directory sorted by name"""
    images = [Path(p) for p in image_args or []]
    if image_dir:
        folder = Path(image_dir)
        if folder.is_dir():
            images.extend(
                sorted(p for p in folder.iterdir() if p.suffix.lower() in IMAGE_EXTENSIONS)
            )
    return images


def print_progress(event: ProgressEvent):
    prefix = f"{event.platform}: " if event.platform else ""
    print(f"  [{event.percent:5.1f}%] {prefix}{event.stage.value}", flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compose a platform-ready promo video from images, overlays and audio using FFmpeg."
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--platform", choices=list_platforms(), help="Target platform")
    target.add_argument(
        "--platforms",
        nargs="+",
        choices=list_platforms(),
        help="Several platforms; outputs are named <output stem>_<platform>",
    )
    parser.add_argument("--output", required=True, help="Output video file")
    parser.add_argument("--images", nargs="*", default=[], help="Image files in display order")
    parser.add_argument("--image_dir", help="Folder with images, used in name order")

    parser.add_argument("--logo", help="Logo image")
    parser.add_argument("--logo_anchor", choices=ANCHORS, help="Logo position (default: platform)")
    parser.add_argument("--review_card", help="Review card image")
    parser.add_argument("--voice_over", help="Voice-over audio")
    parser.add_argument("--music", help="Background music")

    parser.add_argument("--intro_title", help="Intro card title")
    parser.add_argument("--intro_subtitle", help="Intro card subtitle")
    parser.add_argument("--outro_cta", help="Outro card call to action")
    parser.add_argument("--outro_phone", help="Phone shown on the outro card")
    parser.add_argument("--outro_email", help="Email shown on the outro card")
    parser.add_argument("--outro_website", help="Website shown on the outro card")
    parser.add_argument(
        "--card_duration",
        type=float,
        default=5.0,
        help="Intro/outro card duration in seconds",
    )

    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Target duration in seconds (default: platform default)",
    )
    parser.add_argument("--transition", help="Transition type (default: platform)")
    parser.add_argument(
        "--transition_duration",
        type=float,
        default=None,
        help="Transition duration in seconds",
    )
    parser.add_argument(
        "--image_mode",
        choices=IMAGE_MODES,
        default="auto",
        help="How images are fitted into the frame",
    )
    parser.add_argument("--preset", help="x264 preset override")
    parser.add_argument("--crf", type=int, help="x264 CRF override")
    parser.add_argument(
        "--keep_artifacts",
        action="store_true",
        help="Keep intermediate files in the job working directory",
    )
    parser.add_argument("--config", default="config.json", help="Settings file")
    parser.add_argument("--quiet", action="store_true", help="Do not print progress")
    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    settings = load_settings(args.config)
    setup_logging(settings.log_file, getattr(logging, settings.log_level.upper(), logging.INFO))

    images = collect_images(args.images, args.image_dir)
    if not images:
        print("❌ No images given (use --images or --image_dir)")
        return 1

    transition = None
    if args.transition or args.transition_duration is not None:
        transition = TransitionSpec(
            type=args.transition or "fade",
            duration=args.transition_duration if args.transition_duration is not None else 0.5,
        )

    intro = None
    if args.intro_title:
        intro = TextCard.intro(args.intro_title, args.intro_subtitle, duration=args.card_duration)
    outro = None
    if args.outro_cta:
        outro = TextCard.outro(
            args.outro_cta,
            phone=args.outro_phone,
            email=args.outro_email,
            website=args.outro_website,
            duration=args.card_duration,
        )

    request = CompositionRequest(
        platform=args.platform or args.platforms[0],
        images=tuple(p.resolve() for p in images),
        output_path=Path(args.output).resolve(),
        logo=Path(args.logo).resolve() if args.logo else None,
        review_card=Path(args.review_card).resolve() if args.review_card else None,
        voice_over=Path(args.voice_over).resolve() if args.voice_over else None,
        music=Path(args.music).resolve() if args.music else None,
        target_duration=args.duration,
        transition=transition,
        quality=EncodeQuality(preset=args.preset, crf=args.crf),
        image_mode=args.image_mode,
        logo_anchor=args.logo_anchor,
        intro=intro,
        outro=outro,
        keep_artifacts=args.keep_artifacts,
    )
    on_progress = None if args.quiet else print_progress

    try:
        service = CompositionService(settings)
        if args.platforms:
            outcomes = service.compose_many(args.platforms, request, on_progress=on_progress)
            for name, outcome in outcomes.items():
                if outcome.success:
                    print(f"✅ {name}: {outcome.result.output_path}")
                else:
                    print(f"❌ {name}: {outcome.error.diagnostic}")
            return 0 if all(o.success for o in outcomes.values()) else 1

        result = service.compose(request, on_progress=on_progress)

        meta = result.metadata
        print(f"✅ Video created: {result.output_path}")
        print(
            f"   {meta.width}x{meta.height} {meta.codec} {meta.duration:.2f}s "
            f"@ {meta.fps:.2f}fps, {result.batch_count} batch(es)"
        )
        return 0

    except CompositionError as e:
        print(f"❌ {type(e).__name__}: {e.diagnostic}")
        return 1


if __name__ == "__main__":
    exit(main())
