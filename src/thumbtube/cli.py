"""CLI interface: thin wrapper over ThumbTubeService, SearchEngine and AbsorbEngine."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum
from pathlib import Path

import click
import typer
from typer.core import TyperGroup

from thumbtube.absorb import AbsorbEngine, AbsorbError
from thumbtube.config import settings
from thumbtube.ingestion.http import check_connection
from thumbtube.ingestion.links import ExtractionError, LinkExtractor
from thumbtube.ingestion.thumbnails import ALL, BEST, FetchError, ThumbnailFetcher, parse_selector
from thumbtube.interactive import (
    ChafaRenderer,
    ClickEditor,
    DependencyError,
    FzfSelector,
    require_program,
)
from thumbtube.models import Form
from thumbtube.search import SearchEngine, SearchOutput
from thumbtube.service import EntryNotFoundError, ThumbTubeService
from thumbtube.storage.layout import NotARepositoryError, Repository, resolve_repository

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    SUCCESS = 0
    MISSING_DEPENDENCY = 1
    NO_CONNECTIVITY = 2
    BAD_ARGUMENT = 3
    NOT_A_REPOSITORY = 4
    UNKNOWN_COMMAND = 5


class _CommandGroup(TyperGroup):
    """Maps click usage errors onto thumbtube's exit codes."""

    def resolve_command(self, ctx, args):
        try:
            return super().resolve_command(ctx, args)
        except click.UsageError as e:
            e.exit_code = ExitCode.UNKNOWN_COMMAND
            raise

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except click.UsageError as e:
            if e.exit_code != ExitCode.UNKNOWN_COMMAND:
                e.exit_code = ExitCode.BAD_ARGUMENT
            raise


app = typer.Typer(
    name="thumbtube",
    cls=_CommandGroup,
    help="Curate an offline repository of YouTube thumbnails.",
    no_args_is_help=True,
)


def _fail(message: str, code: ExitCode) -> typer.Exit:
    typer.echo(f"❌ {message}", err=True)
    return typer.Exit(code=code)


def _open_repository(ctx: typer.Context) -> Repository:
    """Resolve the target repository or exit with NOT_A_REPOSITORY."""
    try:
        return resolve_repository(Path.cwd(), ctx.obj, settings.default_repository)
    except NotARepositoryError as e:
        raise _fail(str(e), ExitCode.NOT_A_REPOSITORY)


def _get_service(repository: Repository) -> ThumbTubeService:
    """Create a service instance with default dependencies."""
    return ThumbTubeService(repository=repository)


def _get_search_engine(repository: Repository) -> SearchEngine:
    """Create a search engine driving fzf, with chafa previews when installed."""
    require_program(settings.fzf_command)
    renderer = None
    try:
        require_program(settings.chafa_command)
    except DependencyError:
        logger.warning("%s not found; image previews disabled", settings.chafa_command)
    else:
        crop = settings.convert_command
        try:
            require_program(crop)
        except DependencyError:
            logger.info("%s not found; shorts previewed uncropped", crop)
            crop = None
        renderer = ChafaRenderer(crop_command=crop)
    return SearchEngine(repository, FzfSelector(renderer=renderer))


def _require_connection() -> None:
    if not check_connection():
        raise _fail("No internet connectivity", ExitCode.NO_CONNECTIVITY)


class _ProgressBar:
    """Feeds (done, total) reports into typer progress bars on stderr.

    A report with done == 0 starts a new bar under the next label, so one
    sink can follow consecutive passes (download, then scrape).
    """

    def __init__(self, *labels: str) -> None:
        self._labels = list(labels) or [""]
        self._bar = None
        self._done = 0

    def __call__(self, done: int, total: int) -> None:
        if self._bar is None or done == 0:
            self.close()
            label = self._labels.pop(0) if len(self._labels) > 1 else self._labels[0]
            self._bar = typer.progressbar(length=total, label=label, file=sys.stderr)
            self._bar.__enter__()
            self._done = 0
        self._bar.update(done - self._done)
        self._done = done
        if done >= total:
            self.close()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.__exit__(None, None, None)
            self._bar = None


@contextmanager
def _progress_sink(enabled: bool, *labels: str) -> Iterator[_ProgressBar | None]:
    """A progress bar sink for service passes, or None when disabled."""
    if not enabled:
        yield None
        return
    bar = _ProgressBar(*labels)
    try:
        yield bar
    finally:
        bar.close()


def _human_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "K", "M", "G"):
        if value < 1024 or unit == "G":
            return f"{value:.0f}{unit}" if unit == "B" else f"{value:.1f}{unit}"
        value /= 1024
    return f"{value:.1f}G"


@app.callback()
def main(
    ctx: typer.Context,
    repo: Path | None = typer.Option(
        None, "--repo", "-r", help="Use this repository instead of the working directory."
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Silence warnings but not errors."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress details."),
) -> None:
    """Curate an offline repository of YouTube thumbnails."""
    level = logging.ERROR if quiet else logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="thumbtube: %(levelname)s: %(message)s")
    ctx.obj = repo


@app.command()
def init(
    ctx: typer.Context,
    path: Path | None = typer.Argument(None, help="Directory to initialize (default: --repo or cwd)."),
) -> None:
    """Create an empty thumbnail repository."""
    root = path or ctx.obj or Path.cwd()
    repository, created = Repository.init(root)
    repository.close()
    if created:
        typer.echo(f"✅ Initialized thumbnail repository in {root.resolve()}")
    else:
        typer.echo(f"Reinitialized existing thumbnail repository in {root.resolve()}")


def add(
    ctx: typer.Context,
    files: list[Path] | None = typer.Argument(
        None, exists=True, dir_okay=False, readable=True,
        help="Files of links to index. Opens $EDITOR when omitted.",
    ),
    form: Form | None = typer.Option(None, "--form", "-f", help="Form for files of bare video IDs."),
) -> None:
    """Add YouTube videos to the index without downloading them."""
    svc = _get_service(_open_repository(ctx))
    if files:
        report = svc.index_files(files, bare_form=form)
    else:
        report = svc.index_interactive(ClickEditor(), bare_form=form)
    typer.echo(
        f"📥 Indexed {len(report.inserted)} new, "
        f"{len(report.already_indexed)} already indexed"
    )
    if report.rejected:
        typer.echo(
            f"⚠️  {len(report.rejected)} bare ID(s) skipped; use --form to classify them",
            err=True,
        )


app.command(name="add")(add)
app.command(name="index", hidden=True)(add)


def exec_(
    ctx: typer.Context,
    progress: bool = typer.Option(False, "--progress", "-c", help="Count thumbnails as they download."),
) -> None:
    """Download thumbnails in the index that haven't been downloaded."""
    svc = _get_service(_open_repository(ctx))
    _require_connection()
    with _progress_sink(progress, "Downloading") as sink:
        report = svc.download(progress=sink)
    typer.echo(f"🖼️  Downloaded {len(report.succeeded)} of {report.total}")
    if report.failed:
        typer.echo(f"⚠️  {len(report.failed)} failed: {', '.join(report.failed)}", err=True)


app.command(name="exec")(exec_)
app.command(name="download", hidden=True)(exec_)


@app.command()
def scrape(
    ctx: typer.Context,
    progress: bool = typer.Option(False, "--progress", "-c", help="Count videos as they are scraped."),
) -> None:
    """Retrieve titles and channels for downloaded thumbnails."""
    svc = _get_service(_open_repository(ctx))
    _require_connection()
    with _progress_sink(progress, "Scraping") as sink:
        report = svc.scrape(progress=sink)
    typer.echo(f"🏷️  Scraped {len(report.succeeded)} of {report.total}")
    if report.failed:
        typer.echo(f"⚠️  {len(report.failed)} failed: {', '.join(report.failed)}", err=True)


@app.command()
def get(
    ctx: typer.Context,
    files: list[Path] | None = typer.Argument(
        None, exists=True, dir_okay=False, readable=True,
        help="Files of links. Opens $EDITOR when omitted.",
    ),
    form: Form | None = typer.Option(None, "--form", "-f", help="Form for files of bare video IDs."),
    progress: bool = typer.Option(False, "--progress", "-c", help="Show download and scrape counts."),
) -> None:
    """Add, download and scrape in one go."""
    svc = _get_service(_open_repository(ctx))
    _require_connection()
    if files:
        text = "\n".join(p.read_text(encoding="utf-8", errors="replace") for p in files)
    else:
        text = ClickEditor().edit()
    with _progress_sink(progress, "Downloading", "Scraping") as sink:
        report = svc.get(text, progress=sink, bare_form=form)
    typer.echo(f"📥 Indexed {len(report.indexed.inserted)} new")
    typer.echo(f"🖼️  Downloaded {len(report.downloaded.succeeded)} of {report.downloaded.total}")
    typer.echo(f"🏷️  Scraped {len(report.scraped.succeeded)} of {report.scraped.total}")


@app.command()
def stats(ctx: typer.Context) -> None:
    """Report the number of thumbnails and their disk usage."""
    svc = _get_service(_open_repository(ctx))
    result = svc.stats()
    longs, shorts, total = result.forms[Form.LONG], result.forms[Form.SHORT], result.total
    typer.echo(f"{'':<7}{'LONGS':<8}{'SHORTS':<8}TOTAL")
    typer.echo(f"{'COUNT':<7}{longs.count:<8}{shorts.count:<8}{total.count}")
    typer.echo(
        f"{'SIZE':<7}{_human_size(longs.size_bytes):<8}"
        f"{_human_size(shorts.size_bytes):<8}{_human_size(total.size_bytes)}"
    )


@app.command()
def search(
    ctx: typer.Context,
    form: Form | None = typer.Option(None, "--form", "-f", help="Only long or short thumbnails."),
    channels: list[str] | None = typer.Option(None, "--channel", "-C", help="Only this channel (repeatable)."),
    pick_channels: bool = typer.Option(False, "--pick-channels", "-p", help="Choose channels interactively first."),
    urls: bool = typer.Option(False, "--url", "-u", help="Print video URLs instead of image paths."),
) -> None:
    """Fuzzy find thumbnails by title; prints the selected image paths."""
    repository = _open_repository(ctx)
    try:
        engine = _get_search_engine(repository)
    except DependencyError as e:
        raise _fail(str(e), ExitCode.MISSING_DEPENDENCY)
    results = engine.run(
        form=form,
        channels=channels or None,
        pick_channels=pick_channels,
        output=SearchOutput.URL if urls else SearchOutput.PATH,
    )
    for line in results:
        typer.echo(line)


@app.command()
def absorb(
    ctx: typer.Context,
    secondary: Path = typer.Argument(..., help="Repository to merge into this one."),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Report what would be merged."),
    delete: bool = typer.Option(False, "--delete", "-d", help="Delete the secondary repository afterwards."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask before deleting."),
    progress: bool = typer.Option(False, "--progress", "-c", help="Count files as they are copied."),
) -> None:
    """Merge another repository's unique thumbnails into this one."""
    primary = _open_repository(ctx)
    other = Repository(secondary)

    def _confirm() -> bool:
        return yes or typer.confirm(f"Delete repository {secondary.resolve()}?", default=False)

    try:
        with _progress_sink(progress, "Copying") as sink:
            report = AbsorbEngine().absorb(
                primary, other,
                delete_secondary=delete,
                dry_run=dry_run,
                confirm=_confirm,
                progress=sink,
            )
    except (NotARepositoryError, AbsorbError) as e:
        raise _fail(str(e), ExitCode.BAD_ARGUMENT)

    verb = "Would absorb" if report.dry_run else "Absorbed"
    typer.echo(
        f"🔀 {verb} {report.inserted[Form.LONG]} long(s) and "
        f"{report.inserted[Form.SHORT]} short(s)"
    )
    if report.dry_run:
        if report.would_delete_secondary:
            typer.echo(f"   Would delete {secondary}")
        return
    typer.echo(f"   Copied {report.files_copied} file(s)")
    if report.secondary_deleted:
        typer.echo(f"🗑️  Deleted {secondary}")


@app.command()
def troubleshoot(ctx: typer.Context) -> None:
    """Identify discrepancies between indexed and downloaded thumbnails."""
    svc = _get_service(_open_repository(ctx))
    recon = svc.reconcile()
    longs, shorts = recon.forms[Form.LONG], recon.forms[Form.SHORT]
    long_counts, short_counts = svc.counts(Form.LONG), svc.counts(Form.SHORT)

    rows = [
        ("INDEXED", longs.indexed, shorts.indexed),
        ("DOWNLOADED", longs.downloaded, shorts.downloaded),
        ("FILES", longs.files, shorts.files),
        ("DIFFERENCE", longs.difference, shorts.difference),
        ("SCRAPED", long_counts.scraped, short_counts.scraped),
        ("EXHAUSTED", long_counts.exhausted, short_counts.exhausted),
    ]
    typer.echo(f"{'':<12}{'LONGS':<8}SHORTS")
    for label, a, b in rows:
        typer.echo(f"{label:<12}{a:<8}{b}")

    for form, r in recon.forms.items():
        if r.missing_files:
            typer.echo(f"\n{form.store_name}: indexed as downloaded but no file:")
            for video_id in r.missing_files:
                typer.echo(f"  {video_id}")
        if r.untracked_files:
            typer.echo(f"\n{form.store_name}: file present but not downloaded in index:")
            for video_id in r.untracked_files:
                typer.echo(f"  {video_id}")

    reachable = check_connection()
    typer.echo(f"\nRepository: {svc.repository.root.resolve()}")
    typer.echo(f"Network:    {'reachable' if reachable else 'unreachable'} ({settings.connectivity_host})")


@app.command()
def info(
    ctx: typer.Context,
    video: str = typer.Argument(..., help="Video ID or link."),
) -> None:
    """Show the index record of one thumbnail."""
    svc = _get_service(_open_repository(ctx))
    try:
        entry = svc.get_entry(LinkExtractor.parse_video_id(video))
    except (EntryNotFoundError, ExtractionError) as e:
        raise _fail(str(e), ExitCode.BAD_ARGUMENT)
    image = svc.repository.find_image(entry.video_id, entry.form)
    typer.echo(f"ID:        {entry.video_id}")
    typer.echo(f"Form:      {entry.form.value}")
    typer.echo(f"Title:     {entry.title or '(not scraped)'}")
    typer.echo(f"Channel:   {entry.channel or '(not scraped)'}")
    typer.echo(f"Quality:   {entry.quality.value if entry.quality else '(not downloaded)'}")
    typer.echo(f"Attempts:  {entry.attempts}")
    typer.echo(f"URL:       {entry.url}")
    typer.echo(f"Image:     {image.resolve() if image else '(missing)'}")
    typer.echo(f"Indexed:   {entry.indexed_at}")


@app.command()
def remove(
    ctx: typer.Context,
    video: str = typer.Argument(..., help="Video ID or link."),
) -> None:
    """Remove a thumbnail from the index and delete its image."""
    svc = _get_service(_open_repository(ctx))
    try:
        entry = svc.remove(LinkExtractor.parse_video_id(video))
    except (EntryNotFoundError, ExtractionError) as e:
        raise _fail(str(e), ExitCode.BAD_ARGUMENT)
    typer.echo(f"🗑️  Removed: {entry.title or entry.video_id} ({entry.video_id})")


@app.command()
def grab(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Files of links or video IDs."),
    directory: Path = typer.Option(Path("."), "--dir", "-o", help="Where to save thumbnails."),
    quality: str = typer.Option("1", "--quality", "-q", help="Quality 1 (worst) to 5 (best)."),
    best: bool = typer.Option(False, "--best", "-b", help="Best quality available."),
    every: bool = typer.Option(False, "--all", "-a", help="Every quality, named <id>-<quality>."),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing files."),
    count: bool = typer.Option(False, "--count", "-c", help="Count files as they download."),
) -> None:
    """Download thumbnails in bulk into a plain directory, no repository needed."""
    if every:
        selector = ALL
    elif best:
        selector = BEST
    else:
        try:
            selector = parse_selector(quality)
        except ValueError as e:
            raise _fail(str(e), ExitCode.BAD_ARGUMENT)

    _require_connection()
    text = "\n".join(p.read_text(encoding="utf-8", errors="replace") for p in files)
    links = LinkExtractor().extract(text)
    fetcher = ThumbnailFetcher()
    downloaded = failed = 0
    with _progress_sink(count, "Grabbing") as sink:
        if sink:
            sink(0, len(links))
        for done, link in enumerate(links, 1):
            try:
                result = fetcher.fetch(link.video_id, directory, selector, overwrite=force)
                downloaded += not result.skipped
            except FetchError as e:
                logger.warning("%s", e)
                failed += 1
            if sink:
                sink(done, len(links))

    typer.echo(f"🖼️  Downloaded {downloaded} of {len(links)} into {directory}")
    if failed:
        typer.echo(f"⚠️  {failed} failed", err=True)
