# cli.py
import asyncio
from pathlib import Path
from typing import List

import typer
from dotenv import load_dotenv

from plugins.core_pack.archive import fallback_config, project_file_from_bytes
from plugins.core_pack.contracts import InvalidArchiveError, ProjectFile, ProjectState
from plugins.core_pack.manifest import derive_config_from_manifest_text
from plugins.core_pack.models import MANIFEST_PATH
from plugins.core_pack.reconciler import find_file
from plugins.core_pack.service import PackService
from plugins.core_pack.state import new_project

app = typer.Typer(name="pack-studio", help="Bedrock Pack Studio Command-Line Interface")


@app.callback()
def main():
    """Offline pack tools. Settings are read from .env when present."""
    load_dotenv()


def read_directory(source_dir: Path) -> List[ProjectFile]:
    """把一个目录读成文件集；路径相对于 source_dir，按字典序排列。"""
    files = []
    for path in sorted(p for p in source_dir.rglob("*") if p.is_file()):
        relative = path.relative_to(source_dir).as_posix()
        files.append(project_file_from_bytes(relative, path.read_bytes()))
    return files


def write_files(files: List[ProjectFile], output_dir: Path) -> List[Path]:
    """
    把文件集写到 output_dir 下。
    任何一个路径解析到 output_dir 之外时，一个文件都不写。
    """
    root = output_dir.resolve()
    targets = []
    for project_file in files:
        target = (root / project_file.path).resolve()
        if root not in target.parents:
            raise ValueError(f"Refusing to write '{project_file.path}': it escapes '{output_dir}'.")
        targets.append((target, project_file))

    written = []
    for target, project_file in targets:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(project_file.content.to_bytes())
        written.append(target)
    return written


@app.command("pack")
def pack(
    source_dir: Path = typer.Argument(..., exists=True, file_okay=False, dir_okay=True, help="Directory holding the pack files."),
    output_dir: Path = typer.Option(Path("."), "--output", "-o", help="Directory the .mcpack is written to."),
):
    """
    Assembles a directory into a .mcpack archive.
    An existing manifest.json is kept as-is; otherwise one is generated from the directory name.
    """
    files = read_directory(source_dir)
    if not files:
        typer.secho(f"Error: '{source_dir}' contains no files.", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    config = None
    manifest_file = find_file(files, MANIFEST_PATH)
    if manifest_file is not None:
        config = derive_config_from_manifest_text(manifest_file.content.to_bytes().decode("utf-8", errors="replace"))
    if config is None:
        typer.secho(f"No usable manifest.json, generating one for '{source_dir.resolve().name}'.", fg=typer.colors.YELLOW)
        config = fallback_config(source_dir.resolve().name)

    service = PackService(export_dir=str(output_dir))
    state = ProjectState(config=config, files=tuple(files))

    async def _export() -> Path:
        exported = await service.export_pack(state)
        return await service.save_export(exported)

    archive_path = asyncio.run(_export())
    typer.secho(f"✅ Packed {len(files)} files into {archive_path}", fg=typer.colors.GREEN)


@app.command("unpack")
def unpack(
    archive: Path = typer.Argument(..., exists=True, dir_okay=False, help="A .mcpack or .zip archive."),
    output_dir: Path = typer.Option(None, "--output", "-o", help="Target directory. Defaults to the archive name without extension."),
):
    """
    Extracts an archive and prints the configuration derived from it.
    """
    service = PackService()
    try:
        imported = asyncio.run(service.import_pack(archive.read_bytes(), archive.name))
    except InvalidArchiveError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    target_dir = output_dir or archive.with_suffix("")
    try:
        written = write_files(list(imported.files), target_dir)
    except ValueError as e:
        typer.secho(f"🔥 {e}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if not imported.manifest_found:
        typer.secho("No usable manifest.json found, configuration derived from the file name.", fg=typer.colors.YELLOW)
    typer.echo(imported.config.model_dump_json(indent=2))
    typer.secho(f"✅ Extracted {len(written)} files into {target_dir}", fg=typer.colors.GREEN)


@app.command("new")
def new(directory: Path = typer.Argument(..., help="Directory for the new project. Must be empty or absent.")):
    """
    Writes the default project (manifest.json and scripts/main.js) to a directory.
    """
    if directory.exists() and (not directory.is_dir() or any(directory.iterdir())):
        typer.secho(f"Error: '{directory}' is not empty.", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    state = new_project()
    written = write_files(list(state.files), directory)
    for path in written:
        typer.echo(f"  created {path}")
    typer.secho(f"✅ New project '{state.config.name}' created in {directory}", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
