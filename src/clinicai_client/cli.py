#!/usr/bin/env python3
"""
Command-line entry point for the Clinic-AI client.

    clinicai-client transcribe PATIENT_ID VISIT_ID consult.webm --language en
    clinicai-client status PATIENT_ID VISIT_ID
    clinicai-client steps VISIT_ID
    clinicai-client walk-in --name "Jane Doe" --mobile 5550100
    clinicai-client walk-in --list
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from typing import List, Optional

from .application.utils.messages import (
    describe_poll_outcome,
    describe_resolution_error,
    step_description,
    step_display_name,
)
from .client import ClinicAIClient
from .core.config import ApiSettings, get_settings
from .core.exceptions import ClinicAIClientError, WorkflowResolutionError
from .core.structured_logger import configure_logging
from .domain.entities.job import PollOutcome
from .domain.enums.workflow import PollerState
from .domain.value_objects.job_key import JobKey

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clinicai-client",
        description="Submit consultation audio and inspect visit workflow steps",
    )
    parser.add_argument("--base-url", help="Override CLINICAI_API_BASE_URL")
    parser.add_argument("--doctor-id", help="Value sent as X-Doctor-ID")
    subparsers = parser.add_subparsers(dest="command", required=True)

    transcribe = subparsers.add_parser("transcribe", help="Upload audio and wait for the transcript")
    transcribe.add_argument("patient_id")
    transcribe.add_argument("visit_id")
    transcribe.add_argument("audio_file")
    transcribe.add_argument("--language", default="en", help="Language code (default: en)")
    transcribe.add_argument(
        "--deadline-minutes", type=float, help="Give up polling after this many minutes"
    )

    status = subparsers.add_parser("status", help="Check the transcription status once")
    status.add_argument("patient_id")
    status.add_argument("visit_id")

    steps = subparsers.add_parser("steps", help="Show the available workflow steps for a visit")
    steps.add_argument("visit_id")

    walk_in = subparsers.add_parser("walk-in", help="Create or list walk-in visits")
    walk_in.add_argument("--list", action="store_true", help="List walk-in visits")
    walk_in.add_argument("--limit", type=int, default=100)
    walk_in.add_argument("--offset", type=int, default=0)
    walk_in.add_argument("--name")
    walk_in.add_argument("--mobile")
    walk_in.add_argument("--age", type=int)
    walk_in.add_argument("--gender")
    return parser


def _print_outcome(outcome: PollOutcome) -> None:
    print(describe_poll_outcome(outcome))
    if outcome.status == PollerState.SUCCEEDED and outcome.artifact is not None:
        print(outcome.artifact.text)


def _on_transition(session, state: PollerState) -> None:
    logger.info("Session %s -> %s (%s)", session.key, state.value, session.phase_label)


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    overrides = {}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.doctor_id:
        overrides["doctor_id"] = args.doctor_id
    if overrides:
        settings = settings.model_copy(
            update={"api": ApiSettings(**{**settings.api.model_dump(), **overrides})}
        )

    async with ClinicAIClient(settings) as client:
        if args.command == "transcribe":
            key = JobKey(args.patient_id, args.visit_id)
            deadline_ms = int(args.deadline_minutes * 60000) if args.deadline_minutes else None
            outcome = await client.transcribe(
                key,
                args.audio_file,
                language=args.language,
                deadline_ms=deadline_ms,
                on_transition=_on_transition,
            )
            _print_outcome(outcome)
            return 0 if outcome.succeeded else 1

        if args.command == "status":
            check = await client.check_status(JobKey(args.patient_id, args.visit_id))
            print(f"{check.state.value}: {check.message}" if check.message else check.state.value)
            return 0

        if args.command == "steps":
            try:
                state = await client.fetch_steps(args.visit_id)
            except WorkflowResolutionError as exc:
                print(describe_resolution_error(exc), file=sys.stderr)
                return 1
            suffix = " (inferred)" if state.workflow_type_inferred else ""
            if state.raw_workflow_type:
                suffix = f" (inferred, server sent {state.raw_workflow_type!r})"
            print(f"Visit {state.visit_id}: {state.workflow_type.value}{suffix}, status {state.current_status}")
            for step in state.available_steps:
                print(f"  - {step_display_name(step)}: {step_description(step)}")
            return 0

        if args.list:
            visits = await client.list_walk_in_visits(limit=args.limit, offset=args.offset)
            print(json.dumps([asdict(visit) for visit in visits], indent=2))
            return 0
        if not args.name or not args.mobile:
            print("walk-in requires --name and --mobile (or --list)", file=sys.stderr)
            return 2
        visit = await client.create_walk_in_visit(
            args.name, args.mobile, age=args.age, gender=args.gender
        )
        print(json.dumps(asdict(visit), indent=2))
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().logging, stream=sys.stderr)
    try:
        return asyncio.run(_run(args))
    except ClinicAIClientError as exc:
        logger.error("%s", exc.message)
        print(exc.message, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
