import click
import json
import os

from dmi_editor.commands import (
    DEFAULT_CELL_HEIGHT,
    DEFAULT_CELL_WIDTH,
    EditorSession,
    clear_metadata,
    delete_west_frames,
    export_dmi,
    import_dmi,
    mirror_east_to_west,
    open_sprite,
    save_sprite,
    status,
    view_metadata,
)
from dmi_editor import __version__
from dmi_editor.logger import set_debug
from dmi_editor.sprite import Direction

JSON_ENV = os.environ.get("DMI_JSON", "0").lower() in ("1", "true")

FAILED_STATUSES = ("error", "failed", "not_found")


def output_result(result, json_output: bool):
    if json_output:
        if not isinstance(result, (dict, list)):
            result = {"result": result}
        click.echo(json.dumps(result, ensure_ascii=False))
    else:
        if isinstance(result, dict) and "hex" in result:
            click.echo(f"Raw Metadata ({result['bytes']} bytes, Hex):")
            click.echo(result["hex"])
            click.echo("Printable Characters:")
            click.echo(result["text"])
        elif isinstance(result, (dict, list)):
            click.echo(json.dumps(result, ensure_ascii=False, indent=2))
        else:
            click.echo(result)


def exit_code(result) -> int:
    return 1 if isinstance(result, dict) and result.get("status") in FAILED_STATUSES else 0


def direction_type(value):
    if isinstance(value, Direction):
        return value
    try:
        return Direction.parse(value)
    except ValueError as e:
        raise click.BadParameter(str(e))


def cell_options(fn):
    fn = click.option("--cell-height", default=DEFAULT_CELL_HEIGHT, type=click.IntRange(min=1), help="Frame height in pixels")(fn)
    fn = click.option("--cell-width", default=DEFAULT_CELL_WIDTH, type=click.IntRange(min=1), help="Frame width in pixels")(fn)
    return fn


@click.group()
@click.version_option(__version__)
@click.option("--json", "json_output", is_flag=True, help="Return output in JSON format")
@click.option("--debug", is_flag=True, help="Print debug trace messages")
@click.option("--metadata", "metadata_path", default=None, help="Path of the stored metadata chunk")
@click.pass_context
def cli(ctx, json_output, debug, metadata_path):
    """DMI Editor CLI."""
    if debug:
        set_debug(True)
    ctx.obj = {
        "json": json_output or JSON_ENV,
        "session": EditorSession(metadata_path),
    }


def finish(obj, result):
    output_result(result, obj["json"])
    code = exit_code(result)
    if code:
        click.get_current_context().exit(code)


@cli.command(name="status")
@click.pass_obj
def status_cmd(obj):
    """Show whether DMI metadata is loaded."""
    finish(obj, status(obj["session"]))


@cli.command(name="import")
@click.argument("path", type=click.Path(dir_okay=False))
@click.pass_obj
def import_cmd(obj, path):
    """Import the zTXt metadata chunk of a DMI file."""
    finish(obj, import_dmi(obj["session"], path))


@cli.command(name="export")
@click.argument("sprite", type=click.Path(dir_okay=False))
@click.argument("output", type=click.Path(dir_okay=False))
@click.option("--width", default=DEFAULT_CELL_WIDTH, type=int, help="Frame width")
@click.option("--height", default=DEFAULT_CELL_HEIGHT, type=int, help="Frame height")
@click.option("--directions", default=4, type=int, help="Number of directions")
@click.pass_obj
def export_cmd(obj, sprite, output, width, height, directions):
    """Write SPRITE to OUTPUT with the stored metadata chunk."""
    session = obj["session"]
    opened = open_sprite(session, sprite)
    if opened["status"] != "opened":
        finish(obj, opened)
    finish(obj, export_dmi(session, output, width=width, height=height, directions=directions))


@cli.command(name="view")
@click.option("--max-bytes", default=200, type=click.IntRange(min=1), help="Bytes to preview")
@click.pass_obj
def view_cmd(obj, max_bytes):
    """Show the stored metadata as hex and printable text."""
    finish(obj, view_metadata(obj["session"], max_bytes))


@cli.command(name="clear")
@click.pass_obj
def clear_cmd(obj):
    """Clear the stored metadata."""
    finish(obj, clear_metadata(obj["session"]))


def run_transform(obj, sprite, output, transform):
    session = obj["session"]
    opened = open_sprite(session, sprite)
    if opened["status"] != "opened":
        finish(obj, opened)
    result = transform(session)
    if result.get("count"):
        saved = save_sprite(session, output or sprite)
        if saved["status"] != "saved":
            finish(obj, saved)
        result["path"] = saved["path"]
    finish(obj, result)


@cli.command(name="mirror")
@click.argument("sprite", type=click.Path(dir_okay=False))
@click.option("--output", "-o", default=None, help="Output path (defaults to overwriting SPRITE)")
@click.option("--source", default="east", help="Direction to copy from")
@click.option("--target", default="west", help="Direction to mirror into")
@cell_options
@click.pass_obj
def mirror_cmd(obj, sprite, output, source, target, cell_width, cell_height):
    """Mirror east-facing frames into the following west-facing frames."""
    source = direction_type(source)
    target = direction_type(target)
    run_transform(
        obj, sprite, output,
        lambda session: mirror_east_to_west(session, cell_width, cell_height, source, target),
    )


@cli.command(name="delete-west")
@click.argument("sprite", type=click.Path(dir_okay=False))
@click.option("--output", "-o", default=None, help="Output path (defaults to overwriting SPRITE)")
@click.option("--direction", default="west", help="Direction to clear")
@cell_options
@click.pass_obj
def delete_west_cmd(obj, sprite, output, direction, cell_width, cell_height):
    """Clear every west-facing frame."""
    direction = direction_type(direction)
    run_transform(
        obj, sprite, output,
        lambda session: delete_west_frames(session, cell_width, cell_height, direction),
    )


if __name__ == "__main__":
    cli()
