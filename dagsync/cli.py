"""CLI interface for dagsync."""

import logging
from pathlib import Path
from typing import Any, Optional

import click

from .api import IpfsClient
from .config import TRANSPORTS, config
from .exceptions import DagSyncError, DagSyncValidationError
from .gateways import GatewayProber, ProbeResult
from .ipfs_cli import IpfsCliStore
from .media import convert_missing, probe
from .models import ContentAddress, LinkKind
from .output import OutputFormatter
from .store import ContentStore
from .sync import TreeSynchronizer
from .validation import load_validated

logger = logging.getLogger(__name__)


class ContentAddressType(click.ParamType):
    """Click parameter type accepting a CID in textual form."""

    name = "cid"

    def convert(self, value: Any, param: Any, ctx: Any) -> ContentAddress:
        if isinstance(value, ContentAddress):
            return value
        try:
            return ContentAddress.parse(value)
        except ValueError as e:
            self.fail(f"{value!r} is not a valid content address: {e}", param, ctx)


ADDRESS = ContentAddressType()


def create_store(transport: str, api_url: Optional[str] = None) -> ContentStore:
    """Create the content store client for a transport name."""
    if transport == "cli":
        return IpfsCliStore()
    return IpfsClient(api_url=api_url)


def _open_store(ctx: Any) -> ContentStore:
    transport = ctx.obj["transport"] or config.transport
    return create_store(transport, ctx.obj["api_url"])


def dweb_url(address: ContentAddress) -> str:
    return f"https://{address.to_base32()}.ipfs.dweb.link"


def _report_error(out: OutputFormatter, error: Exception) -> None:
    out.error(str(error))
    if isinstance(error, DagSyncValidationError):
        for message in error.errors:
            out.error(f"  {message}")


def _print_probe_results(out: OutputFormatter, results: list[ProbeResult]) -> None:
    for result in results:
        if result.ok:
            out.info(f"  {result.status_code} {result.url}")
        elif result.status_code is not None:
            out.warning(f"{result.status_code} {result.url}")
        else:
            out.warning(f"{result.url}: {result.error}")


@click.group()
@click.option(
    "--api-url",
    help="IPFS RPC API URL (default: DAGSYNC_API_URL or http://127.0.0.1:5001/api/v0)",
)
@click.option(
    "--transport",
    "-t",
    type=click.Choice(TRANSPORTS),
    default=None,
    help="Talk to the store over the daemon's HTTP API or the ipfs binary",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option()
@click.pass_context
def main(
    ctx: Any,
    api_url: Optional[str],
    transport: Optional[str],
    quiet: bool,
    json: bool,
    verbose: bool,
) -> None:
    """dagsync - Patch IPFS directory objects to mirror a local tree."""
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url
    ctx.obj["transport"] = transport
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("dagsync").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("root", type=ADDRESS)
@click.argument(
    "local_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option(
    "--immutable-ext",
    "-i",
    multiple=True,
    help=(
        "Extension of files never re-uploaded once published, even if edited "
        "locally (repeatable; default: DAGSYNC_IMMUTABLE_EXTENSIONS or .flac,.wav)"
    ),
)
@click.option(
    "--no-immutable",
    is_flag=True,
    help="Compare every file, including those with immutable extensions",
)
@click.option(
    "--manifest",
    "-m",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON document to validate against its schema before syncing",
)
@click.option(
    "--prime",
    "prime_gateways",
    is_flag=True,
    help="Request the new root from public gateways afterwards",
)
@click.pass_context
def sync(
    ctx: Any,
    root: ContentAddress,
    local_dir: Path,
    immutable_ext: tuple[str, ...],
    no_immutable: bool,
    manifest: Optional[Path],
    prime_gateways: bool,
) -> None:
    """Patch the directory object ROOT so that it mirrors LOCAL_DIR.

    Files and subdirectories whose content did not change keep their
    addresses and cost no patch. Remote entries missing locally are only
    reported. Files with an immutable extension that already exist
    remotely are never re-uploaded, so local edits to them are ignored.

    Examples:
        dagsync sync QmRoot... ./site
        dagsync sync QmRoot... ./site -i .flac -i .mkv --prime
    """
    out: OutputFormatter = ctx.obj["out"]

    if no_immutable:
        extensions: Any = ()
    elif immutable_ext:
        extensions = immutable_ext
    else:
        extensions = config.immutable_extensions

    try:
        if manifest is not None:
            load_validated(manifest)
            out.info(f"Manifest {manifest} is valid")

        with _open_store(ctx) as store:
            synchronizer = TreeSynchronizer(store, out, immutable_extensions=extensions)
            new_root = synchronizer.sync(root, local_dir)

            results: list[ProbeResult] = []
            if prime_gateways:
                try:
                    results = GatewayProber(store).prime(new_root)
                    _print_probe_results(out, results)
                except DagSyncError as e:
                    out.warning(f"Gateway priming failed: {e}")
    except (DagSyncError, OSError) as e:
        _report_error(out, e)
        ctx.exit(1)

    if out.json_output:
        out.output_json(
            {
                "root": str(new_root),
                "previous_root": str(root),
                "changed": new_root != root,
                "url": dweb_url(new_root),
                "stats": synchronizer.stats.to_dict(),
                "gateways": [result.to_dict() for result in results],
            }
        )
        return

    out.result(f"New root object {new_root}")
    out.result(dweb_url(new_root))


main.add_command(sync, name="patch")


@main.command()
@click.argument("address", type=ADDRESS)
@click.option(
    "--gateway",
    "-g",
    "gateways",
    multiple=True,
    help="Gateway URL template with {base32}, {v0} or {cid} (repeatable)",
)
@click.pass_context
def prime(ctx: Any, address: ContentAddress, gateways: tuple[str, ...]) -> None:
    """Request ADDRESS and its immediate children from public gateways."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        with _open_store(ctx) as store:
            prober = GatewayProber(store, templates=gateways or None)
            results = prober.prime(address)
    except DagSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    if out.json_output:
        out.output_json([result.to_dict() for result in results])
        return

    _print_probe_results(out, results)
    ok = sum(1 for result in results if result.ok)
    out.success(f"Primed {ok}/{len(results)} gateway URL(s)")


@main.command()
@click.argument("address", type=ADDRESS)
@click.pass_context
def cid(ctx: Any, address: ContentAddress) -> None:
    """Show ADDRESS in its alternate encodings."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        v0: Optional[str] = address.to_v0()
    except ValueError:
        v0 = None

    info = {
        "cid": str(address),
        "version": address.version,
        "base32": address.to_base32(),
        "v0": v0,
        "url": dweb_url(address),
    }

    if out.json_output:
        out.output_json(info)
        return

    out.print_summary(
        "Content address",
        [
            ("CID", info["cid"]),
            ("CIDv0", v0 or "(not representable)"),
            ("CIDv1 base32", info["base32"]),
            ("Gateway", info["url"]),
        ],
    )


@main.command()
@click.argument("address", type=ADDRESS)
@click.pass_context
def ls(ctx: Any, address: ContentAddress) -> None:
    """List the links of the directory object at ADDRESS."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        with _open_store(ctx) as store:
            directory = store.fetch_directory(address)
    except DagSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    if out.json_output:
        out.output_json(directory.to_dict())
        return

    if not directory.links:
        out.info("Directory is empty")
        return

    for link in directory.links:
        suffix = "/" if link.kind == LinkKind.DIRECTORY else ""
        out.result(
            f"{link.target}  {out.format_size(link.size):>10}  {link.name}{suffix}"
        )


@main.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def validate(ctx: Any, path: Path) -> None:
    """Validate the JSON document PATH against its declared $schema."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        load_validated(path)
    except DagSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    out.success(f"✓ {path} is valid")


@main.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--source-ext", default=".flac", help="Extension of masters (default: .flac)")
@click.option("--target-ext", default=".ogg", help="Extension to produce (default: .ogg)")
@click.pass_context
def convert(ctx: Any, directory: Path, source_ext: str, target_ext: str) -> None:
    """Transcode masters under DIRECTORY whose target file is missing."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        converted = convert_missing(directory, source_ext=source_ext, target_ext=target_ext)
    except DagSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    if out.json_output:
        out.output_json([str(path) for path in converted])
        return

    for path in converted:
        out.info(f"Converted {path}")
    out.success(f"Converted {len(converted)} file(s)")


@main.command(name="probe")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def probe_command(ctx: Any, path: Path) -> None:
    """Show technical metadata of the audio file PATH."""
    out: OutputFormatter = ctx.obj["out"]

    try:
        info = probe(path)
    except DagSyncError as e:
        _report_error(out, e)
        ctx.exit(1)

    if out.json_output:
        out.output_json(info.to_dict())
        return

    out.print_summary(
        str(path),
        [
            ("Format", info.format),
            ("Channels", info.channels),
            ("Sample rate", info.sample_rate),
            ("Bit depth", info.bit_depth),
            ("Duration", info.duration),
        ],
    )


if __name__ == "__main__":
    main()
