#!/usr/bin/env python3
"""
Drive a full generation against a running API and write the zip export.
Usage: python scripts/run_generation.py form.json --user-id user_123 --out prompts.zip
       python scripts/run_generation.py --generation-id <id> --user-id user_123
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

from prompt_builder.core.errors import GenerationError
from prompt_builder.core.logging import configure_logging
from prompt_builder.driver.backend import HttpBackend
from prompt_builder.driver.engine import GenerationDriver
from prompt_builder.driver.stores import KeyValueStore, ProgressStore
from prompt_builder.driver.worker import WorkerStatus
from prompt_builder.export.archive import build_zip, download_filename
from prompt_builder.schemas.form import WizardForm


async def run(args) -> int:
    kwargs = {}
    if args.state_dir:
        kwargs["progress_store"] = ProgressStore(KeyValueStore(args.state_dir))
    backend = HttpBackend(args.api_base_url)

    if args.generation_id:
        try:
            driver = await GenerationDriver.resume(backend, args.generation_id, args.user_id, **kwargs)
        except GenerationError as e:
            print(f"Could not load {args.generation_id}: {e}")
            return 1
        print(f"Resuming {args.generation_id} at {driver.step.value} "
              f"({driver.worker.completed_count} prompts already generated)")
    else:
        form = WizardForm.model_validate(json.loads(Path(args.form).read_text(encoding="utf-8")))
        driver = GenerationDriver(backend=backend, user_id=args.user_id, form=form, **kwargs)
    form = driver.form

    print(f"Generating prompts for: {form.project_name}")
    print(f"Categories: {', '.join(c.value for c in driver.categories)}")
    print()

    try:
        status = await driver.run_all()
    except GenerationError as e:
        print(f"Failed at {driver.step.value}: {e}")
        if driver.generation_id:
            print(f"Resume with --generation-id {driver.generation_id}")
        return 1

    print(f"Generation: {driver.generation_id}")
    print(f"Status: {status.value} ({driver.worker.completed_count}/{driver.worker.total} prompts)")
    if status is not WorkerStatus.DONE:
        print(f"Error: {driver.error}")
        return 1

    out = Path(args.out or download_filename(form.project_name, "zip"))
    out.write_bytes(build_zip(driver.result()))
    print(f"Wrote {out}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Run every generation stage and export the prompts")
    parser.add_argument("form", nargs="?", help="Path to a JSON wizard form (not needed with --generation-id)")
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--api-base-url", default=None, help="Defaults to API_BASE_URL")
    parser.add_argument("--generation-id", default=None, help="Resume an existing generation")
    parser.add_argument("--state-dir", default=None, help="Local progress cache directory")
    parser.add_argument("--out", default=None, help="Zip output path")
    args = parser.parse_args()
    if not args.form and not args.generation_id:
        parser.error("a form is required unless --generation-id is given")

    configure_logging()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
