"""
Run one itinerary plan against the live providers and print the JSON.

Needs GOOGLE_MAPS_API_KEY (and optionally GOOGLE_API_KEY or
GOOGLE_CLOUD_PROJECT for narrative text) in the environment or .env.

Usage:
    python scripts/preview_itinerary.py --property lamar --duration full_day --notes "no coffee, love bbq"
    python scripts/preview_itinerary.py --origin 29.4241,-98.4936 --transport walk --plan-day now
    python scripts/preview_itinerary.py --property gabriel --swap lunch
"""

import argparse
import json
import logging
import os
import sys

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.models.itinerary import Budget, Duration, LatLng, Pace, PlanDay, PreferenceInput, Transport  # noqa: E402
from app.services.itinerary_service import ItineraryGenerationError, ItineraryService  # noqa: E402
from app.services.property_service import PROPERTIES, get_property_config  # noqa: E402
from app.services.swap import swap_block  # noqa: E402

logger = logging.getLogger("preview_itinerary")


def _origin(value: str) -> LatLng:
    try:
        lat, lng = (float(x) for x in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError("origin must look like 29.4241,-98.4936")
    return LatLng(lat=lat, lng=lng)


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Preview a generated itinerary",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    where = p.add_mutually_exclusive_group(required=True)
    where.add_argument("--property", choices=sorted(PROPERTIES), help="Property slug")
    where.add_argument("--origin", type=_origin, help="lat,lng to plan around")
    p.add_argument("--city", default="San Antonio, TX", help="City label for --origin plans")
    p.add_argument("--duration", choices=[d.value for d in Duration], default=Duration.half_day.value)
    p.add_argument("--pace", choices=[x.value for x in Pace], default=Pace.balanced.value)
    p.add_argument("--transport", choices=[t.value for t in Transport], default=Transport.drive.value)
    p.add_argument("--budget", choices=[b.value for b in Budget], default=Budget.moderate.value)
    p.add_argument("--vibe", action="append", dest="vibes", default=None, help="Repeatable, e.g. --vibe food")
    p.add_argument("--notes", default=None)
    p.add_argument("--plan-day", choices=[d.value for d in PlanDay], default=PlanDay.today.value)
    p.add_argument("--start-time", default=None, help="HH:MM")
    p.add_argument("--swap", default=None, metavar="BLOCK_ID", help="Swap this block once and print the result too")
    p.add_argument("-v", "--verbose", action="store_true")
    return p.parse_args()


if __name__ == "__main__":
    args = _parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    cfg = get_property_config(args.property)
    prefs = PreferenceInput(
        city=cfg.city if cfg else args.city,
        propertySlug=cfg.slug if cfg else None,
        origin=args.origin,
        duration=args.duration,
        pace=args.pace,
        transport=args.transport,
        budget=args.budget,
        vibes=(args.vibes or ["food"])[:6],
        notes=args.notes,
        planDay=args.plan_day,
        startTime=args.start_time,
    )

    try:
        itinerary = ItineraryService().generate_itinerary(prefs)
    except (ItineraryGenerationError, ValueError) as e:
        logger.error(f"Could not generate itinerary: {e}")
        sys.exit(1)

    print(json.dumps(itinerary.model_dump(mode="json"), indent=2))

    if args.swap:
        swapped = swap_block(itinerary, args.swap)
        block = next(b for b in swapped.blocks if b.id == args.swap)
        print(f"\nAfter swap, {block.id}: {block.primary.name if block.primary else 'no match'}")
