# cli.py
import sys
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import click
from botocore.exceptions import BotoCoreError, ClientError

from .bootstrap import BootstrapValidator, render_instructions
from .errors import DeploymentError
from .factory import build_pipeline
from .outputs import OutputsStore
from .pipeline import DeploymentPipeline
from .settings import Settings, get_settings
from .stacks import is_usable
from .targets import ALL, DeployTarget, load_targets, select
from .utils.logging import DeployLogger, configure_logging


@dataclass
class CLIContext:
    settings: Settings
    targets_file: str

    def targets(self) -> List[DeployTarget]:
        return load_targets(self.targets_file)

    def pipeline(self, max_workers: int = 1) -> DeploymentPipeline:
        return build_pipeline(self.settings, DeployLogger("site_deployer"),
                              max_workers=max_workers)


stage_option = click.option("--stage", default="dev", show_default=True,
                             help="Deployment stage, e.g. dev or prod")


def _fail(message: str) -> None:
    click.echo(f"❌ {message}", err=True)
    sys.exit(1)


def _for_each_target(targets: List[DeployTarget], action: Callable[[DeployTarget], None]) -> int:
    """Run ``action`` per target; a failure is reported and the next target still runs."""
    failures = 0
    for target in targets:
        try:
            action(target)
        except (DeploymentError, ClientError, BotoCoreError) as e:
            click.echo(f"❌ {target.name}: {type(e).__name__}: {e}", err=True)
            failures += 1
    return failures


def _echo_sync(pipeline: DeploymentPipeline, stage: str) -> Callable[[DeployTarget], None]:
    def action(target: DeployTarget) -> None:
        report, outcome = pipeline.sync_only(target, stage)
        click.echo(f"✅ {target.name}: uploaded {len(report.uploaded)}, deleted {len(report.deleted)}")
        if outcome and outcome.warning:
            click.echo(f"⚠️  {target.name}: {outcome.warning}")
    return action


def _echo_invalidate(pipeline: DeploymentPipeline, stage: str) -> Callable[[DeployTarget], None]:
    def action(target: DeployTarget) -> None:
        outcome = pipeline.invalidate_only(target, stage)
        if outcome.warning:
            click.echo(f"⚠️  {target.name}: {outcome.warning}")
        else:
            click.echo(f"✅ {target.name}: cache invalidated")
    return action


@click.group()
@click.option("--targets-file", default=None, help="Path to the targets catalogue")
@click.option("--log-file", default=None, help="Also write log lines to this file")
@click.option("--log-level", default=None, help="Logging level (default from settings)")
@click.pass_context
def cli(ctx, targets_file, log_file, log_level):
    """Deploy static sites: provision stacks, upload builds, invalidate caches"""
    settings = get_settings()
    configure_logging(log_level or settings.log_level, log_file or settings.log_file)
    ctx.obj = CLIContext(settings=settings, targets_file=targets_file or settings.targets_file)


@cli.command()
@click.argument("target")
@stage_option
@click.option("--remove", is_flag=True, help="Delete the stacks instead of deploying")
@click.option("--parallel", default=1, show_default=True, type=click.IntRange(1, 16),
              help="Number of targets deployed at once")
@click.option("--yes", is_flag=True, help="Do not ask before removing stacks")
@click.pass_obj
def deploy(obj: CLIContext, target, stage, remove, parallel, yes):
    """Deploy TARGET (a target name or 'all')"""
    try:
        targets = select(obj.targets(), target)
    except DeploymentError as e:
        _fail(str(e))

    if remove and not yes:
        names = ", ".join(t.name for t in targets)
        click.confirm(f"This will delete the {stage} stacks for: {names}. Continue?", abort=True)

    report = obj.pipeline(max_workers=parallel).run(targets, stage, remove=remove)
    for line in report.summary_lines():
        click.echo(line)
    sys.exit(report.exit_code)


@cli.command()
@click.argument("target")
@stage_option
@click.pass_obj
def sync(obj: CLIContext, target, stage):
    """Upload the current build of TARGET without touching its stack"""
    try:
        targets = select(obj.targets(), target)
    except DeploymentError as e:
        _fail(str(e))
    failures = _for_each_target(targets, _echo_sync(obj.pipeline(), stage))
    sys.exit(1 if failures else 0)


@cli.command()
@click.argument("target")
@stage_option
@click.pass_obj
def invalidate(obj: CLIContext, target, stage):
    """Invalidate the CDN cache of TARGET"""
    try:
        targets = select(obj.targets(), target)
    except DeploymentError as e:
        _fail(str(e))
    failures = _for_each_target(targets, _echo_invalidate(obj.pipeline(), stage))
    sys.exit(1 if failures else 0)


@cli.command()
@stage_option
@click.pass_obj
def status(obj: CLIContext, stage):
    """Show the live stack status of every target"""
    try:
        rows = obj.pipeline().status(obj.targets(), stage)
    except DeploymentError as e:
        _fail(str(e))
    click.echo(f"Deployment Status ({stage})")
    for target, state in rows:
        if state.raw_status is None:
            click.echo(f"  {target.name}: ❌ Not deployed")
            continue
        icon = "✅" if is_usable(state) else "⚠️"
        url = state.outputs.get(target.url_output)
        click.echo(f"  {target.name}: {icon} {state.raw_status}{f' - {url}' if url else ''}")


@cli.command()
@click.argument("target")
@stage_option
@click.pass_obj
def outputs(obj: CLIContext, target, stage):
    """Show the outputs saved by the last deployment of TARGET"""
    try:
        targets = select(obj.targets(), target)
    except DeploymentError as e:
        _fail(str(e))
    store = OutputsStore()
    for item in targets:
        record = store.load(item.outputs_path(obj.settings)).get(stage)
        if record is None:
            click.echo(f"{item.name}: no saved outputs for stage {stage}")
            continue
        click.echo(f"{item.name} (last updated {record.last_updated}):")
        for key, value in record.outputs.items():
            click.echo(f"  {key}: {value}")


@cli.command("bootstrap-check")
@click.pass_obj
def bootstrap_check(obj: CLIContext):
    """Verify the template bucket and CloudFormation service role exist"""
    report = BootstrapValidator(obj.settings).validate()
    if report.ready:
        click.echo(f"✅ Bootstrap resources present (caller: {report.caller_arn})")
        return
    click.echo(render_instructions(report))
    sys.exit(1)


MenuAction = Callable[[CLIContext, str], None]


def _choose_target(obj: CLIContext, allow_all: bool = True) -> Optional[str]:
    targets = obj.targets()
    for index, target in enumerate(targets, start=1):
        click.echo(f"   [{index}] {target.name}")
    if allow_all:
        click.echo("   [a] All targets")
    click.echo("   [b] Back")
    choice = click.prompt("   Enter choice", default="b", show_default=False).strip()
    if choice == "a" and allow_all:
        return ALL
    if choice.isdigit() and 1 <= int(choice) <= len(targets):
        return targets[int(choice) - 1].name
    return None


def _menu_deploy(obj: CLIContext, stage: str) -> None:
    selector = _choose_target(obj)
    if selector:
        report = obj.pipeline().run(select(obj.targets(), selector), stage)
        for line in report.summary_lines():
            click.echo(line)


def _menu_sync(obj: CLIContext, stage: str) -> None:
    selector = _choose_target(obj)
    if selector:
        _for_each_target(select(obj.targets(), selector), _echo_sync(obj.pipeline(), stage))


def _menu_invalidate(obj: CLIContext, stage: str) -> None:
    selector = _choose_target(obj)
    if selector:
        _for_each_target(select(obj.targets(), selector), _echo_invalidate(obj.pipeline(), stage))


def _menu_remove(obj: CLIContext, stage: str) -> None:
    click.echo("   ⚠️  This will delete CloudFormation stacks!")
    selector = _choose_target(obj, allow_all=False)
    if not selector:
        return
    if click.prompt(f"   Type 'yes' to confirm deletion of {selector}", default="") != "yes":
        click.echo("   Cancelled")
        return
    report = obj.pipeline().run(select(obj.targets(), selector), stage, remove=True)
    for line in report.summary_lines():
        click.echo(line)


def _menu_status(obj: CLIContext, stage: str) -> None:
    for target, state in obj.pipeline().status(obj.targets(), stage):
        click.echo(f"   {target.name}: {state.raw_status or 'Not deployed'}")


MENU: Dict[str, Tuple[str, Optional[MenuAction]]] = {
    "d": ("Deploy", _menu_deploy),
    "u": ("Upload build only", _menu_sync),
    "i": ("Invalidate cache only", _menu_invalidate),
    "r": ("Remove stacks", _menu_remove),
    "s": ("Show status", _menu_status),
    "q": ("Quit", None),
}


@cli.command()
@stage_option
@click.pass_obj
def menu(obj: CLIContext, stage):
    """Interactive deployment menu"""
    while True:
        click.echo("═" * 60)
        click.echo(f"   Deployment Manager    Stage: {stage}    Region: {obj.settings.aws_region}")
        click.echo("─" * 60)
        for key, (label, _) in MENU.items():
            click.echo(f"   [{key}] {label}")
        choice = click.prompt("   Enter choice", default="q", show_default=False).strip().lower()

        if choice not in MENU:
            click.echo("Invalid choice")
            continue
        label, action = MENU[choice]
        if action is None:
            return
        try:
            action(obj, stage)
        except (DeploymentError, ClientError, BotoCoreError) as e:
            click.echo(f"Error: {type(e).__name__}: {e}", err=True)


def main():
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("Interrupted", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
