"""Ahara command line: ``ahara serve``, ``ahara intake`` and ``ahara seed``."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from ipaddress import ip_address
from pathlib import Path

import click

from ahara.core.config.settings import Settings, get_settings
from ahara.core.errors import DuplicateRecord, ValidationFailure
from ahara.core.storage.database import PatientDatabase
from ahara.core.storage.encryption import DocumentCodec
from ahara.core.storage.repository import PatientRepository
from ahara.domains.ayurveda.display.export import format_plan_text, plan_filename
from ahara.domains.ayurveda.display.intake import IntakeSession
from ahara.domains.ayurveda.domain_logic.generator import DietPlanGenerator, GeneratorConfig
from ahara.domains.ayurveda.domain_logic.library import load_sample_patients
from ahara.domains.ayurveda.domain_logic.patient_schema import validate_patient_payload

logger = logging.getLogger(__name__)


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.ahara_log_level.upper(), logging.INFO),
        format="%(levelname)s: %(name)s: %(message)s",
    )


def seed_sample_patients(repository: PatientRepository) -> list[str]:
    """Insert the bundled sample patients that are not stored yet.

    Returns:
        Ids of the patients inserted by this call.
    """
    inserted = []
    for entry in load_sample_patients():
        patient_id = entry["id"]
        if repository.find(patient_id, include_inactive=True) is not None:
            logger.info("Sample patient %s already present", patient_id)
            continue
        try:
            document = validate_patient_payload(entry["record"])
            repository.create(document, patient_id=patient_id)
        except (ValidationFailure, DuplicateRecord) as exc:
            logger.warning("Skipping sample patient %s: %s", patient_id, exc)
            continue
        inserted.append(patient_id)
    return inserted


@click.group()
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Ahara: Ayurvedic patient records and diet-plan generation."""
    settings = get_settings()
    _configure_logging(settings)
    ctx.obj = settings


@cli.command()
@click.pass_obj
def serve(settings: Settings) -> None:
    """Run the REST API with uvicorn."""
    import uvicorn

    from ahara.core.server.app import create_app

    if not settings.ahara_allow_insecure_bind and not _is_loopback_host(settings.ahara_host):
        raise click.ClickException(
            "Refusing to bind to a non-loopback host without an auth layer. "
            "Set AHARA_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info("Starting Ahara API on %s:%d", settings.ahara_host, settings.ahara_port)
    uvicorn.run(
        create_app(settings=settings),
        host=settings.ahara_host,
        port=settings.ahara_port,
        log_level=settings.ahara_log_level.lower(),
    )


@cli.command()
@click.pass_obj
def seed(settings: Settings) -> None:
    """Insert the sample patient(s) into the configured store."""
    with PatientDatabase(settings.db_path) as database:
        repository = PatientRepository(database, DocumentCodec.from_key(settings.encryption_key))
        inserted = seed_sample_patients(repository)
    if inserted:
        click.echo(f"Inserted {len(inserted)} sample patient(s): {', '.join(inserted)}")
    else:
        click.echo("Sample patients already present")


@cli.command()
@click.option(
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Also write the plan export into this directory",
)
@click.option("--variation", type=int, default=0, help="Fallback plan variation")
@click.pass_obj
def intake(settings: Settings, output_dir: Path | None, variation: int) -> None:
    """Collect patient details interactively and print a generated plan."""
    session = IntakeSession()
    click.echo("Ayurvedic diet-plan intake. Answer each question; there is no going back.\n")
    while not session.is_complete:
        question = session.current_question
        click.echo(f"[{session.step + 1}/{session.total}] {question.question}")
        session.submit(click.prompt(f"  ({question.placeholder})", default="", show_default=False))

    generator = DietPlanGenerator(GeneratorConfig.from_settings(settings))
    result = asyncio.run(generator.generate(session.answers, variation=variation))
    if result.source == "fallback":
        click.echo(f"Note: showing a local fallback plan ({result.fallback_reason})", err=True)

    today = date.today()
    text = format_plan_text(result.data or {}, today)
    click.echo(text)
    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / plan_filename(today)
        path.write_text(text, encoding="utf-8")
        click.echo(f"Plan written to {path}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
