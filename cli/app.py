"""
Typer CLI application with Rich integration.

Commands:
    generate       — Render one banner (terms, compliance, rights, render)
    suggest        — Render A/B candidates picked by the bandit
    pick           — Record the winning candidate of a session
    bootstrap      — Seed bandit priors from a profile's templateInit
    ingest-ctr     — Feed impression / click counts into the bandit
    stats          — Show bandit statistics
    feedback       — Nudge a tenant profile with a feedback tag
    init-profile   — Create a brand profile (optionally from a logo)
    check          — Compliance check for a title
    terms-suggest  — Keep / drop / replace suggestions from history
    terms-apply    — Update a tenant term dictionary
    teach          — Store a copywriting teach sample
    annotate       — Record rights metadata for an asset
    ledger         — Export the rights / licence ledger of rendered banners
    catalog        — Render a catalog grid from a CSV
    presets        — List canvas presets and templates
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from rich import box
from rich.table import Table

from cli.callbacks import (
    parse_replacements,
    resolve_canvas,
    validate_csv,
    validate_hex,
    validate_preset,
    validate_size,
)
from cli.console import console
from cli.display import (
    show_arm_stats,
    show_banner,
    show_banner_result,
    show_candidates,
    show_config_table,
    show_error,
    show_findings,
    show_goodbye,
    show_term_suggestions,
)
from config.settings import SIZE_PRESETS, PathConfig, cfg
from config.templates import ALL_TEMPLATES, DEFAULT_TEMPLATE
from utils.exceptions import BannerGenError

app = typer.Typer(
    name="bannergen",
    help="🖼️  Banner generator — templates, brand profiles, compliance and A/B optimisation",
    rich_markup_mode="rich",
    add_completion=True,
    no_args_is_help=False,
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  ENUMS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class FitMode(str, Enum):
    contain = "contain"
    cover   = "cover"


class PaletteMode(str, Enum):
    brand              = "brand"
    auto_analogous     = "auto-analogous"
    auto_complementary = "auto-complementary"
    auto_soft          = "auto-soft"


class LicenseKind(str, Enum):
    commercial_ok = "commercial-ok"
    editorial     = "editorial"
    restricted    = "restricted"
    unknown       = "unknown"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  HELPERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _setup() -> None:
    """Logging, directories, validation."""
    from utils.log_config import setup_root

    setup_root(cfg.paths.log_file, verbose=cfg.verbose)
    cfg.paths.ensure()
    with _guard():
        cfg.validate()


def _open_store():
    from storage.store import DocumentStore

    _setup()
    with _guard():
        return DocumentStore.from_config(cfg)


@contextmanager
def _guard():
    """Turn engine errors into a red panel and exit code 1."""
    try:
        yield
    except BannerGenError as exc:
        show_error(str(exc), title=type(exc).__name__)
        raise typer.Exit(code=1) from None


def _load_profile(store, profile_path: Optional[Path], tenant: Optional[str]):
    from core.profile import ProfileRepository, load_profile

    if profile_path:
        return load_profile(profile_path)
    if tenant:
        return ProfileRepository(store).require(tenant)
    raise typer.BadParameter("Pass --profile or --tenant")


def _build_request(**kwargs):
    from core.models import BannerRequest

    return BannerRequest(**{k: v for k, v in kwargs.items() if v is not None})


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  GENERATE COMMAND
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def generate(
    title: str = typer.Option(..., "--title", "-t", help="Banner headline"),
    template: str = typer.Option(DEFAULT_TEMPLATE, "--template", "-T", help="Template id"),
    profile: Optional[Path] = typer.Option(
        None, "--profile", "-p", help="Brand profile JSON", exists=True, dir_okay=False,
    ),
    tenant: Optional[str] = typer.Option(None, "--tenant", help="Tenant id (profile, terms, tweaks)"),
    market: str = typer.Option("generic", "--market", "-m", help="generic | r10 | yss"),
    price: Optional[str] = typer.Option(None, "--price"),
    discount: Optional[str] = typer.Option(None, "--discount"),
    badge: Optional[str] = typer.Option(None, "--badge"),
    period: Optional[str] = typer.Option(None, "--period"),
    variant: Optional[List[str]] = typer.Option(None, "--variant", help="Repeat per variant"),
    image: Optional[Path] = typer.Option(
        None, "--image", "-i", help="Product image", exists=True, dir_okay=False,
    ),
    fit: FitMode = typer.Option(FitMode.contain, "--fit"),
    size: Optional[str] = typer.Option(None, "--size", "-s", help="WIDTHxHEIGHT", callback=validate_size),
    preset: Optional[str] = typer.Option(None, "--preset", help="Canvas preset", callback=validate_preset),
    evidence: Optional[str] = typer.Option(None, "--evidence", help="Source backing No.1 / 最安 claims"),
    summarize: bool = typer.Option(True, "--summarize/--raw", help="Shape the title"),
    title_max: Optional[int] = typer.Option(None, "--title-max", min=1),
    title_lines: Optional[int] = typer.Option(None, "--title-lines", min=1),
    palette: Optional[PaletteMode] = typer.Option(None, "--palette", help="Derive colours from the image"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Output PNG path"),
) -> None:
    """
    🖼️  [bold]Render one banner[/bold].

    [dim]Examples:[/dim]
        bannergen generate -t "春の大感謝セール" -p profile.json --price "¥1,980"
        bannergen generate -t "No.1 保冷ボトル" --tenant demo --preset r10_product -i bottle.png
    """
    from core.studio import BannerStudio

    show_banner()
    store = _open_store()
    with _guard():
        prof = _load_profile(store, profile, tenant)
        dims, margin = resolve_canvas(size, preset)
        if margin is not None:
            prof = prof.model_copy(update={"safe_margin": margin})

        request = _build_request(
            title=title, template=template, tenant=tenant, market=market,
            price=price, discount=discount, badge=badge, period=period,
            variants=list(variant or []), image=str(image) if image else None,
            fit=fit.value, size=dims,
        )
        with console.status("Rendering...", spinner="dots"):
            result = BannerStudio(cfg, store).create(
                request, prof,
                evidence=evidence,
                summarize=summarize,
                title_max=title_max,
                title_lines=title_lines,
                palette_mode=palette.value if palette else None,
                out_path=out,
            )

    show_banner_result(result.to_dict())
    show_goodbye(str(result.path))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  A/B COMMANDS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def suggest(
    tenant: str = typer.Option(..., "--tenant"),
    title: str = typer.Option(..., "--title", "-t"),
    market: str = typer.Option("generic", "--market", "-m"),
    n: int = typer.Option(cfg.bandit.default_n, "--n", "-n", min=1, help="Number of candidates"),
    profile: Optional[Path] = typer.Option(None, "--profile", "-p", exists=True, dir_okay=False),
    price: Optional[str] = typer.Option(None, "--price"),
    discount: Optional[str] = typer.Option(None, "--discount"),
    badge: Optional[str] = typer.Option(None, "--badge"),
    period: Optional[str] = typer.Option(None, "--period"),
    image: Optional[Path] = typer.Option(None, "--image", "-i", exists=True, dir_okay=False),
    size: Optional[str] = typer.Option(None, "--size", "-s", callback=validate_size),
    preset: Optional[str] = typer.Option(None, "--preset", callback=validate_preset),
) -> None:
    """
    🎯 Render [bold]n[/bold] A/B candidates chosen epsilon-greedily.
    """
    from abtest.service import ABService

    show_banner()
    store = _open_store()
    with _guard():
        prof = _load_profile(store, profile, tenant)
        dims, margin = resolve_canvas(size, preset)
        if margin is not None:
            prof = prof.model_copy(update={"safe_margin": margin})
        request = _build_request(
            title=title, tenant=tenant, market=market, price=price, discount=discount,
            badge=badge, period=period, image=str(image) if image else None, size=dims,
        )
        with console.status("Rendering candidates...", spinner="dots"):
            session = ABService(store, conf=cfg).suggest(tenant, market, n, request, prof)

    show_candidates(session)
    console.print(f"[muted]Record the winner with: bannergen pick --tenant {tenant} "
                  f"--market {market} --session {session['sessionId']} --choice <id>[/]")


@app.command()
def pick(
    tenant: str = typer.Option(..., "--tenant"),
    session: str = typer.Option(..., "--session"),
    choice: str = typer.Option(..., "--choice"),
    market: str = typer.Option("generic", "--market", "-m"),
) -> None:
    """
    🏆 Record the winning candidate of an A/B session.
    """
    from abtest.service import ABService

    store = _open_store()
    with _guard():
        result = ABService(store, conf=cfg).select_winner(tenant, market, session, choice)
    console.print(f"[success]✅ Winner recorded:[/] [template]{result['winner']}[/]")


@app.command()
def bootstrap(
    tenant: str = typer.Option(..., "--tenant"),
    market: str = typer.Option("generic", "--market", "-m"),
    profile: Optional[Path] = typer.Option(None, "--profile", "-p", exists=True, dir_okay=False),
) -> None:
    """
    🌱 Seed bandit priors from the profile's [bold]templateInit[/bold] (only on empty stats).
    """
    from abtest.service import ABService

    store = _open_store()
    with _guard():
        prof = _load_profile(store, profile, tenant)
        applied = ABService(store, conf=cfg).bootstrap(tenant, market, prof.template_init)
    if applied:
        console.print(f"[success]✅ Bootstrapped A/B stats for {tenant}/{market}[/]")
    else:
        console.print("[warning]A/B stats already exist. Skip bootstrap.[/]")


@app.command("ingest-ctr")
def ingest_ctr(
    csv: Optional[Path] = typer.Argument(
        None, help="CSV with template,impressions,clicks[,tenant,market]", callback=validate_csv,
    ),
    tenant: Optional[str] = typer.Option(None, "--tenant"),
    market: str = typer.Option("generic", "--market", "-m"),
    template: Optional[str] = typer.Option(None, "--template", "-T"),
    impressions: float = typer.Option(0, "--impressions"),
    clicks: float = typer.Option(0, "--clicks"),
) -> None:
    """
    📈 Feed externally measured impressions / clicks into the bandit.
    """
    from abtest.service import ABService

    store = _open_store()
    svc = ABService(store, conf=cfg)
    with _guard():
        if csv is not None:
            result = svc.ingest_ctr_csv(csv, tenant, market)
        elif tenant and template:
            result = {f"{tenant}/{market}/{template}":
                      svc.ingest_ctr(tenant, market, template, impressions, clicks)}
        else:
            raise typer.BadParameter("Pass a CSV, or --tenant and --template")
    show_arm_stats(result, title="📈 Updated counters")


@app.command()
def stats(
    tenant: str = typer.Option(..., "--tenant"),
    market: str = typer.Option("generic", "--market", "-m"),
) -> None:
    """
    📊 Show decayed bandit statistics for a tenant / market.
    """
    from abtest.weights import StatsRepository

    store = _open_store()
    with _guard():
        arms = StatsRepository(store, cfg.bandit).load(tenant, market)
    show_arm_stats(arms)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  PROFILE COMMANDS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def feedback(
    tenant: str = typer.Option(..., "--tenant"),
    tag: str = typer.Argument(..., help="larger_text | smaller_text | elegant | stand_out | wider_margin | tighter_margin"),
) -> None:
    """
    🎚️  Nudge a tenant profile with one feedback tag.
    """
    from core.profile import ProfileRepository

    store = _open_store()
    with _guard():
        prof = ProfileRepository(store).apply_feedback(tenant, tag)
    show_config_table({
        "Font scale": prof.font_scale,
        "Saturation": prof.saturation,
        "Safe margin": prof.safe_margin,
    }, title=f"🎚️  {prof.brand_name}")


@app.command("init-profile")
def init_profile(
    brand: str = typer.Option("新規店舗", "--brand", "-b"),
    logo: Optional[Path] = typer.Option(None, "--logo", exists=True, dir_okay=False),
    primary: Optional[str] = typer.Option(None, "--primary", help="Override the primary colour", callback=validate_hex),
    tenant: Optional[str] = typer.Option(None, "--tenant", help="Also store under this tenant"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write profile JSON here"),
) -> None:
    """
    🎨 Create a brand profile, seeded from the logo's colours when given.
    """
    from core.profile import ProfileRepository, default_profile, init_profile_from_logo, save_profile

    store = _open_store()
    with _guard():
        prof = init_profile_from_logo(logo, brand) if logo else default_profile(brand)
        if primary:
            prof = prof.model_copy(update={"colors": prof.colors.model_copy(update={"primary": primary})})
        if tenant:
            ProfileRepository(store).save(tenant, prof)
        if out:
            save_profile(prof, out)

    show_config_table({
        "Brand": prof.brand_name,
        **{f"Colour · {k}": v for k, v in prof.colors.as_map().items()},
        "Safe margin": prof.safe_margin,
        "Stored for": tenant or "—",
        "Written to": str(out) if out else "—",
    }, title="🎨 Brand profile")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  COPYWRITING COMMANDS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def check(
    title: str = typer.Argument(..., help="Headline to check"),
    market: str = typer.Option("generic", "--market", "-m"),
    evidence: Optional[str] = typer.Option(None, "--evidence"),
    tenant: Optional[str] = typer.Option(None, "--tenant", help="Apply the tenant's terms first"),
) -> None:
    """
    🛡️  Compliance check (forbidden / evidence-required expressions).
    """
    from copywriting.compliance import check_compliance
    from copywriting.terms import apply_terms, load_terms, unprotect

    if tenant:
        store = _open_store()
        with _guard():
            title = unprotect(apply_terms(title, load_terms(store, tenant)))

    result = check_compliance(title, market, evidence)
    show_findings(result.title, result.warnings, result.notes)
    if not result.ok:
        raise typer.Exit(code=2)


@app.command("terms-suggest")
def terms_suggest(
    tenant: str = typer.Option(..., "--tenant"),
    limit: int = typer.Option(cfg.terms.suggest_limit, "--limit", min=1),
) -> None:
    """
    📚 Suggest keep / drop / replace terms from past edits.
    """
    from copywriting.learning import suggest_terms

    store = _open_store()
    with _guard():
        suggestions = suggest_terms(store, tenant, limit, cfg.terms)
    show_term_suggestions(suggestions.to_dict())


@app.command("terms-apply")
def terms_apply(
    tenant: str = typer.Option(..., "--tenant"),
    keep: Optional[List[str]] = typer.Option(None, "--keep", help="Protect a word"),
    drop: Optional[List[str]] = typer.Option(None, "--drop", help="Remove a word"),
    replace: Optional[List[str]] = typer.Option(None, "--replace", help="FROM=TO"),
) -> None:
    """
    ✏️  Merge keep / drop / replace entries into the tenant dictionary.
    """
    from copywriting.terms import TermsPatch, apply_terms_update

    patch = TermsPatch(
        add_keep=list(keep or []),
        add_drop=list(drop or []),
        add_replace=parse_replacements(replace),
    )
    store = _open_store()
    with _guard():
        terms = apply_terms_update(store, tenant, patch)
    show_config_table({
        "Keep": terms.keep or "—",
        "Drop": terms.drop or "—",
        "Replace": [f"{k}→{v}" for k, v in terms.replace.items()] or "—",
    }, title=f"📚 Terms · {tenant}")


@app.command()
def teach(
    tenant: str = typer.Option(..., "--tenant"),
    input_text: str = typer.Option(..., "--input", help="What the user asked"),
    model_output: str = typer.Option(..., "--model-output"),
    ideal: str = typer.Option(..., "--ideal", help="What it should have been"),
    tag: Optional[List[str]] = typer.Option(None, "--tag"),
    reason: Optional[str] = typer.Option(None, "--reason"),
) -> None:
    """
    🧑‍🏫 Store a teach sample (used as few-shot examples).
    """
    from copywriting.teach import TeachSample, load_few_shots, save_teach_sample

    store = _open_store()
    with _guard():
        save_teach_sample(store, tenant, TeachSample(
            input=input_text, model_output=model_output, ideal_output=ideal,
            tags=list(tag or []), reason=reason,
        ))
        shots = load_few_shots(store, tenant)
    console.print(f"[success]✅ Saved.[/] [muted]{len(shots)} few-shot sample(s) active for {tenant}[/]")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  ASSETS / PRESETS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.command()
def annotate(
    file: Path = typer.Argument(..., exists=True, dir_okay=False),
    license_: Optional[LicenseKind] = typer.Option(None, "--license"),
    owner: Optional[str] = typer.Option(None, "--owner"),
    source_url: Optional[str] = typer.Option(None, "--source-url"),
    expires: Optional[str] = typer.Option(None, "--expires", help="ISO date"),
    market: Optional[List[str]] = typer.Option(None, "--market", help="Allowed market (repeat)"),
    note: Optional[str] = typer.Option(None, "--note"),
) -> None:
    """
    ©️  Record rights metadata for an asset in the library index.
    """
    from core.rights import annotate_asset

    _setup()
    fields = {
        "license": license_.value if license_ else None,
        "owner": owner,
        "source_url": source_url,
        "expires_at": expires,
        "allowed_markets": list(market) if market else None,
        "note": note,
    }
    try:
        meta = annotate_asset(file, cfg.paths.asset_library,
                              **{k: v for k, v in fields.items() if v is not None})
    except ValueError as exc:
        show_error(str(exc), title="Invalid metadata")
        raise typer.Exit(code=1) from None
    show_config_table(meta.model_dump(mode="json", exclude_none=True), title=f"©️  {file.name}")


@app.command()
def ledger(
    out: Path = typer.Option(Path("asset-ledger.csv"), "--out", "-o", help="CSV to write"),
    source: Optional[Path] = typer.Option(
        None, "--source", help="Folder with rendered banners (default: output dir)", file_okay=False,
    ),
) -> None:
    """
    📒 Export the rights / licence ledger from the banners' JSON sidecars.
    """
    from core.ledger import export_ledger

    _setup()
    df = export_ledger(source or cfg.paths.output_dir, out)
    if df is None:
        console.print("[warning]No sidecars found. Nothing exported.[/]")
        return
    console.print(f"[success]✅ Asset ledger exported:[/] {out} [muted]({len(df)} record(s))[/]")


@app.command()
def catalog(
    csv: Path = typer.Argument(..., help="CSV with image,title,price,badge (first 8 rows)", callback=validate_csv),
    profile: Optional[Path] = typer.Option(None, "--profile", "-p", exists=True, dir_okay=False),
    tenant: Optional[str] = typer.Option(None, "--tenant"),
    title: str = typer.Option("", "--title", "-t", help="Grid heading"),
    size: Optional[str] = typer.Option(None, "--size", "-s", callback=validate_size),
    preset: Optional[str] = typer.Option(None, "--preset", help="Canvas preset (default r10_product)",
                                         callback=validate_preset),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Output PNG path"),
) -> None:
    """
    🗂️  Render a [bold]catalog-grid[/bold] banner from a CSV.
    """
    from core.catalog import render_catalog

    store = _open_store()
    with _guard():
        prof = _load_profile(store, profile, tenant)
        if not size and not preset:
            preset = "r10_product"
        dims, margin = resolve_canvas(size, preset)
        if margin is not None:
            prof = prof.model_copy(update={"safe_margin": margin})
        with console.status("Rendering catalog...", spinner="dots"):
            path = render_catalog(csv, prof, size=dims, title=title, tenant=tenant,
                                  out_path=out, conf=cfg, store=store)
    show_goodbye(str(path))


@app.command()
def presets() -> None:
    """
    📐 List canvas presets and registered templates.
    """
    table = Table(title="📐 Canvas presets", box=box.ROUNDED, border_style="bright_blue")
    table.add_column("Preset", style="template")
    table.add_column("Size", style="stat_val")
    table.add_column("Safe margin", justify="right", style="highlight")
    for name, ((w, h), margin) in SIZE_PRESETS.items():
        table.add_row(name, f"{w}x{h}", str(margin))
    console.print(table)

    console.print(f"[stat_key]Templates:[/] [template]{', '.join(ALL_TEMPLATES)}[/]")
    console.print()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  DEFAULT (no command)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@app.callback(invoke_without_command=True)
def default(
    ctx: typer.Context,
    data_dir: Optional[Path] = typer.Option(None, "--data-dir", help="Root for stores, output and caches"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """
    🖼️  Banner generator.

    Run [bold]bannergen generate --help[/bold] to render a banner.
    """
    if data_dir:
        cfg.paths = PathConfig.under(data_dir)
    cfg.verbose = cfg.verbose or verbose

    if ctx.invoked_subcommand is None:
        show_banner()
        console.print("Available commands:\n")
        console.print("  [bold cyan]generate[/]       Render one banner")
        console.print("  [bold cyan]suggest[/]        Render A/B candidates")
        console.print("  [bold cyan]pick[/]           Record an A/B winner")
        console.print("  [bold cyan]bootstrap[/]      Seed A/B priors")
        console.print("  [bold cyan]ingest-ctr[/]     Ingest impressions / clicks")
        console.print("  [bold cyan]stats[/]          Show A/B statistics")
        console.print("  [bold cyan]feedback[/]       Adjust a brand profile")
        console.print("  [bold cyan]init-profile[/]   Create a brand profile")
        console.print("  [bold cyan]check[/]          Compliance check")
        console.print("  [bold cyan]terms-suggest[/]  Term suggestions")
        console.print("  [bold cyan]terms-apply[/]    Update tenant terms")
        console.print("  [bold cyan]teach[/]          Store a teach sample")
        console.print("  [bold cyan]annotate[/]       Record asset rights")
        console.print("  [bold cyan]ledger[/]         Export the asset ledger")
        console.print("  [bold cyan]catalog[/]        Catalog banner from CSV")
        console.print("  [bold cyan]presets[/]        Canvas presets")
        console.print()
        console.print("[muted]Run 'python main.py --help' for every command[/]")
