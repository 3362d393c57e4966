"""Command-line interface for env-backup."""

import logging
import sys
import click
from typing import Optional, TextIO

from .config.config_manager import CONFIG_ENV_VAR, ConfigManager
from .core.archiver import DeterministicArchiver
from .core.errors import ArchiveToolError, ConfigError
from .core.fingerprint import ContentFingerprinter
from .core.models import Capability
from .core.orchestrator import BackupOrchestrator
from .reporters.summary_reporter import SummaryReporter


def setup_logging(level: str, log_file: Optional[str] = None, stream: Optional[TextIO] = None):
    """Set up logging configuration.

    Console output goes to stream, stdout by default.
    """
    # Convert string level to logging constant
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f'Invalid log level: {level}')

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            click.echo(f"Warning: Could not set up file logging: {e}", err=True)


def _load_config(ctx, log_stream: Optional[TextIO] = None) -> ConfigManager:
    """Load the configuration and apply its logging section.

    Command-line logging options take precedence over the config file.
    """
    config_manager = ConfigManager(ctx.obj.get('config_path'))
    config_manager.load_config()

    logging_config = config_manager.get_logging_config()
    level = ctx.obj.get('log_level') or logging_config.get('level') or 'INFO'
    log_file = ctx.obj.get('log_file') or logging_config.get('file')
    setup_logging(level, log_file, stream=log_stream)

    return config_manager


def _build_fingerprinter(config_manager: Optional[ConfigManager] = None) -> ContentFingerprinter:
    if config_manager is None:
        return ContentFingerprinter()

    archiver_config = config_manager.get_archiver_config()
    archiver = DeterministicArchiver(
        tar_commands=archiver_config['tar_commands'],
        gzip_command=archiver_config['gzip_command']
    )
    return ContentFingerprinter(archiver, temp_dir=archiver_config.get('temp_dir'))


@click.group()
@click.option('--config', '-c', 'config_path', envvar=CONFIG_ENV_VAR,
              help=f'Path to configuration file (or set {CONFIG_ENV_VAR})')
@click.option('--log-level', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR'], case_sensitive=False),
              help='Logging level [default: INFO]')
@click.option('--log-file',
              help='Log file path')
@click.pass_context
def cli(ctx, config_path: Optional[str], log_level: Optional[str], log_file: Optional[str]):
    """env-backup - Back up files and directories, keeping only changed content."""
    ctx.ensure_object(dict)

    setup_logging(log_level or 'INFO', log_file)

    ctx.obj['config_path'] = config_path
    ctx.obj['log_level'] = log_level
    ctx.obj['log_file'] = log_file


@cli.command()
@click.option('--output', '-o', type=click.Choice(['text', 'json']), default='text',
              help='Output format')
@click.option('--verbose', '-v', is_flag=True,
              help='Show latest and archived paths in the text summary')
@click.pass_context
def run(ctx, output: str, verbose: bool):
    """Back up all configured entries."""
    # keep stdout clean for machine-readable output
    log_stream = sys.stderr if output == 'json' else None
    try:
        config_manager = _load_config(ctx, log_stream=log_stream)
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    orchestrator = BackupOrchestrator(_build_fingerprinter(config_manager))
    results = orchestrator.run(config_manager.get_backup_entries())

    reporter = SummaryReporter(results)
    reporter.log_summary()

    if output == 'json':
        click.echo(reporter.generate_json_report())
    else:
        click.echo(reporter.generate_text_report(verbose=verbose))

    if reporter.has_errors:
        sys.exit(1)


@cli.command()
@click.argument('path', type=click.Path(exists=True))
@click.pass_context
def fingerprint(ctx, path: str):
    """Print the content fingerprint of a file or directory."""
    try:
        config_manager = _load_config(ctx) if ctx.obj.get('config_path') else None
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    fingerprinter = _build_fingerprinter(config_manager)
    try:
        digest = fingerprinter.fingerprint(path)
    except (ArchiveToolError, OSError) as e:
        click.echo(f"Error fingerprinting {path}: {e}", err=True)
        sys.exit(1)

    click.echo(f"{digest}  {path}")


@cli.command()
@click.pass_context
def probe(ctx):
    """Show which archiving tool would be used."""
    try:
        config_manager = _load_config(ctx) if ctx.obj.get('config_path') else None
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    archiver = _build_fingerprinter(config_manager).archiver
    try:
        strategy = archiver.strategy
    except ArchiveToolError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"Strategy:   {strategy.name}")
    click.echo(f"Tar:        {strategy.tar_command}")
    click.echo(f"Gzip:       {strategy.gzip_command}")
    click.echo(f"Capability: {strategy.capability.value}")

    if strategy.capability == Capability.DEGRADED:
        click.echo("⚠️  Timestamps are not normalized; install GNU tar for fully deterministic archives")


@cli.command()
@click.pass_context
def validate_config(ctx):
    """Validate configuration file."""
    try:
        config_manager = _load_config(ctx)
    except ConfigError as e:
        click.echo(f"❌ Configuration validation failed: {e}", err=True)
        sys.exit(1)

    click.echo("✅ Configuration loaded successfully")

    entries = config_manager.get_backup_entries()
    click.echo(f"\n📊 Configuration Summary:")
    click.echo(f"   Backup entries: {len(entries)}")

    for i, entry in enumerate(entries, 1):
        click.echo(f"     {i}. {entry.name}: {entry.source} -> {entry.latest} (archive: {entry.archive_dir})")


def main():
    """Main CLI entry point."""
    cli()


if __name__ == '__main__':
    main()
